"""HTTP surface for job submission, polling and script execution."""

from script_studio.api.app import create_app

__all__ = ["create_app"]
