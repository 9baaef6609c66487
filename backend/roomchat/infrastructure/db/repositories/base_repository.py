"""
Base Repository for Room Chat AI

Shared plumbing for session-bound repositories.
"""

from typing import Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.infrastructure.exceptions import ValidationError


def as_uuid(value: Union[str, UUID], field: str = "id") -> UUID:
    """Coerce a string identifier to UUID, raising ValidationError if malformed."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError(
            f"Invalid {field}: {value!r}",
            details={"field": field},
            original_error=e,
        ) from e


class SessionRepository:
    """
    Repository bound to one AsyncSession.

    The caller owns the session and therefore the transaction boundary;
    repositories only flush.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session
