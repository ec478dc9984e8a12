"""
Bootstrap status - who is this user relative to the tenant model.

Feeds the route guard together with the access status.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendafacil.models.store import Store, StoreMember
from vendafacil.models.user import User
from vendafacil.services.access_status import AccessStatusUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapStatus:
    has_store: bool = False
    is_member: bool = False
    is_admin: bool = False
    store_id: Optional[str] = None

    @property
    def is_new_user(self) -> bool:
        return not self.has_store and not self.is_member and not self.is_admin

    def to_dict(self) -> dict:
        return {
            "has_store": self.has_store,
            "is_member": self.is_member,
            "is_admin": self.is_admin,
            "store_id": self.store_id,
        }


class BootstrapStatusService:
    """Resolves BootstrapStatus from users, stores and store_members."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_bootstrap_status(self, user_id: str) -> BootstrapStatus:
        """
        Classify a user.

        store_id is the store the user owns, else the oldest store they
        are a member of.

        Raises:
            AccessStatusUnavailableError: If the tenant tables cannot be read
        """
        try:
            user = self.db.query(User).filter(User.id == user_id).first()
            owned = self.db.query(Store).filter(
                Store.user_id == user_id
            ).order_by(Store.created_at.asc()).first()
            membership = self.db.query(StoreMember).filter(
                StoreMember.user_id == user_id
            ).order_by(StoreMember.created_at.asc()).first()
        except SQLAlchemyError as e:
            logger.error("Failed to read bootstrap status", extra={
                "user_id": user_id,
                "error": str(e),
            })
            raise AccessStatusUnavailableError(f"user:{user_id}", str(e)) from e

        store_id = None
        if owned is not None:
            store_id = owned.id
        elif membership is not None:
            store_id = membership.store_id

        return BootstrapStatus(
            has_store=owned is not None,
            is_member=membership is not None,
            is_admin=bool(user is not None and user.is_admin),
            store_id=store_id,
        )
