from typing import Optional

from fastapi import Depends, Request, Response

from anonchat.container import AppContainer
from anonchat.errors import UnauthorizedError
from anonchat.schemas import WebSession


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


def get_optional_session(
    request: Request, container: AppContainer = Depends(get_container)
) -> Optional[WebSession]:
    """The caller's web session if the cookie names a live one; never creates."""
    sid = request.cookies.get(container.settings.SESSION_COOKIE_NAME)
    return container.sessions.get(sid)


def get_web_session(
    response: Response,
    session: Optional[WebSession] = Depends(get_optional_session),
    container: AppContainer = Depends(get_container),
) -> WebSession:
    """The caller's web session, issuing a new one (and its cookie) when absent."""
    if session is not None:
        return session

    settings = container.settings
    session = container.sessions.create()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.session_id,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    return session


def require_admin(session: Optional[WebSession] = Depends(get_optional_session)) -> WebSession:
    if session is None or not session.is_admin:
        raise UnauthorizedError("Unauthorized")
    return session
