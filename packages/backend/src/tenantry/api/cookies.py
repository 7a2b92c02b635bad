"""Session and active-company cookies.

Learn: The session cookie is HTTP-only so page scripts can't read the
token. The company cookie is only a hint for the next login; it is never
trusted without a membership check (see AuthService._start_session).
"""

import uuid
from typing import Optional

from fastapi import Request, Response

from tenantry.config import settings
from tenantry.db.models import Session


def set_session_cookie(response: Response, session: Session) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        session.token,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name, path="/")


def set_company_cookie(response: Response, company_id: uuid.UUID) -> None:
    response.set_cookie(
        settings.company_cookie_name,
        str(company_id),
        max_age=settings.company_cookie_max_age_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_company_cookie(response: Response) -> None:
    response.delete_cookie(settings.company_cookie_name, path="/")


def preferred_company_id(request: Request) -> Optional[uuid.UUID]:
    """Company id from the cookie, or None if absent or malformed."""
    raw = request.cookies.get(settings.company_cookie_name)
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        return None
