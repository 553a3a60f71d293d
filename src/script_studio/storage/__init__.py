"""SQLite persistence for jobs, scripts and executions."""
