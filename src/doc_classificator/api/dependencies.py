"""
Request-scoped dependencies.
"""

from fastapi import Request

from ..session import ClassificationSession


def get_session(request: Request) -> ClassificationSession:
    """Session owned by the running app (app.state.session)."""
    return request.app.state.session
