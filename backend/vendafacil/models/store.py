"""
Store (tenant) and StoreMember models.

A user either owns a store (stores.user_id) or works in someone else's
store as staff (store_members). Both feed the bootstrap status.
"""

from enum import Enum

from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, func
)
from sqlalchemy.orm import relationship

from vendafacil.db_base import Base
from vendafacil.models.base import generate_uuid


class MemberRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"


class Store(Base):
    """One customer account ("loja")."""

    __tablename__ = "stores"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Store owner"
    )
    name = Column(String(255), nullable=False)
    status = Column(String(32), nullable=True, default="active")
    trial_used = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Whether the free trial was already consumed"
    )
    trial_started_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    members = relationship("StoreMember", back_populates="store", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Store(id={self.id}, name={self.name}, owner={self.user_id})>"


class StoreMember(Base):
    """Staff membership of a user in a store they do not own."""

    __tablename__ = "store_members"

    store_id = Column(
        String(36),
        ForeignKey("stores.id", ondelete="CASCADE"),
        primary_key=True
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True
    )
    role = Column(String(16), nullable=False, default=MemberRole.STAFF.value)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    store = relationship("Store", back_populates="members")
