"""script-studio: script generation jobs and a subprocess execution engine."""

__version__ = "0.1.0"
