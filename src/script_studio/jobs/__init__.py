"""Asynchronous generation jobs: models, persistence and background processing."""

from script_studio.jobs.models import JobCreate, JobKind, JobPatch, JobStatus, JobView
from script_studio.jobs.processor import JobProcessor
from script_studio.jobs.repository import JobRepository

__all__ = [
    "JobCreate",
    "JobKind",
    "JobPatch",
    "JobProcessor",
    "JobRepository",
    "JobStatus",
    "JobView",
]
