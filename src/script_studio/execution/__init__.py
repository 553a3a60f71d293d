"""Stored scripts and their sandboxed-by-workspace execution."""

from script_studio.execution.engine import ExecutionEngine
from script_studio.execution.installer import DependencyInstaller, DependencyInstallResult
from script_studio.execution.models import (
    ExecutionStatus,
    ExecutionView,
    ScriptCreate,
    ScriptPatch,
    ScriptView,
)
from script_studio.execution.repository import ExecutionRepository, ScriptRepository

__all__ = [
    "DependencyInstallResult",
    "DependencyInstaller",
    "ExecutionEngine",
    "ExecutionRepository",
    "ExecutionStatus",
    "ExecutionView",
    "ScriptCreate",
    "ScriptPatch",
    "ScriptRepository",
    "ScriptView",
]
