"""
User model - platform account (mirrors the auth provider's user id).
"""

from sqlalchemy import Column, String, Boolean

from vendafacil.db_base import Base
from vendafacil.models.base import TimestampMixin, generate_uuid


class User(Base, TimestampMixin):
    """Authenticated platform user. is_admin marks platform operators."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=True)
    is_admin = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Platform operator (SaaS admin)"
    )
    is_blocked = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, is_admin={self.is_admin})>"
