"""
Request Dependencies Module

FastAPI dependencies giving routes the application session.
"""

from fastapi import Depends, Request

from .auth import require_bearer_token


def get_session(request: Request):
    return request.app.state.session


async def get_live_session(request: Request, token: str = Depends(require_bearer_token)):
    """
    Session scoped to the caller's token.

    A token different from the session's re-scopes the live resources.
    """
    session = get_session(request)
    if session.token != token:
        await session.set_token(token)
    return session
