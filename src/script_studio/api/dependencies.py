"""Request-scoped access to the application runtime."""

from __future__ import annotations

from fastapi import Request

from script_studio.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime
