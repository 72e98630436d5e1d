"""
Session lifecycle: issue, validate and revoke cookie sessions.

The cookie carries a random token signed with itsdangerous; the raw token
is the primary key of a row in the ``session`` table, which holds the owning
user id and a fixed expiry. Validation never extends the expiry.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import Response
from itsdangerous import BadData, URLSafeTimedSerializer
from sqlmodel import Session, select

import config
from models import User, UserSession, as_utc, utcnow

logger = logging.getLogger(__name__)

serializer = URLSafeTimedSerializer(config.SIGNING_KEY, salt="session")


def _unsign(token: Optional[str]) -> Optional[str]:
    """
    Returns the raw session key from a cookie value,
    or None if it is missing, tampered with, or older than the TTL.
    """
    if not token:
        return None
    try:
        raw = serializer.loads(token, max_age=config.SESSION_TTL_SECONDS)
    except BadData:
        return None
    return raw if isinstance(raw, str) else None


def create_session(session: Session, user_id: int) -> str:
    raw = secrets.token_urlsafe(32)
    row = UserSession(
        token=raw,
        user_id=user_id,
        expires_at=utcnow() + timedelta(seconds=config.SESSION_TTL_SECONDS),
    )
    session.add(row)
    session.commit()
    return serializer.dumps(raw)


def validate_session(session: Session, token: Optional[str]) -> Optional[int]:
    """Returns the user id behind ``token``, or None for "no session"."""
    raw = _unsign(token)
    if raw is None:
        return None

    row = session.get(UserSession, raw)
    if row is None:
        return None

    if as_utc(row.expires_at) <= utcnow():
        session.delete(row)
        session.commit()
        return None

    if session.get(User, row.user_id) is None:
        return None

    return row.user_id


def destroy_session(session: Session, token: Optional[str]) -> None:
    raw = _unsign(token)
    if raw is None:
        return

    row = session.get(UserSession, raw)
    if row is None:
        return

    session.delete(row)
    session.commit()


def purge_expired_sessions(session: Session) -> int:
    expired = session.exec(
        select(UserSession).where(UserSession.expires_at <= utcnow())
    ).all()
    for row in expired:
        session.delete(row)
    session.commit()
    if expired:
        logger.info("Purged %d expired sessions", len(expired))
    return len(expired)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=config.SESSION_TTL_SECONDS,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        config.SESSION_COOKIE_NAME,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
