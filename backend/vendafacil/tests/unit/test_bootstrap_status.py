"""
Unit tests for bootstrap status resolution.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from vendafacil.services.access_status import AccessStatusUnavailableError
from vendafacil.services.bootstrap_status import BootstrapStatus, BootstrapStatusService


class TestBootstrapStatusService:

    def test_new_user(self, db_session, make_user):
        user = make_user()

        status = BootstrapStatusService(db_session).get_bootstrap_status(user.id)

        assert status == BootstrapStatus()
        assert status.is_new_user is True

    def test_unknown_user_is_new(self, db_session):
        status = BootstrapStatusService(db_session).get_bootstrap_status("no-such-user")

        assert status.is_new_user is True

    def test_owner(self, db_session, make_user, make_store):
        owner = make_user()
        store = make_store(owner)

        status = BootstrapStatusService(db_session).get_bootstrap_status(owner.id)

        assert status.has_store is True
        assert status.is_member is False
        assert status.store_id == store.id

    def test_member(self, db_session, make_user, make_store, make_member):
        owner = make_user()
        staff = make_user()
        store = make_store(owner)
        make_member(store, staff)

        status = BootstrapStatusService(db_session).get_bootstrap_status(staff.id)

        assert status.has_store is False
        assert status.is_member is True
        assert status.store_id == store.id
        assert status.is_new_user is False

    def test_owned_store_preferred_over_membership(self, db_session, make_user, make_store, make_member):
        user = make_user()
        other_owner = make_user()
        own_store = make_store(user)
        make_member(make_store(other_owner), user)

        status = BootstrapStatusService(db_session).get_bootstrap_status(user.id)

        assert status.store_id == own_store.id

    def test_admin(self, db_session, make_user):
        admin = make_user(is_admin=True)

        status = BootstrapStatusService(db_session).get_bootstrap_status(admin.id)

        assert status.is_admin is True
        assert status.is_new_user is False

    def test_database_error_is_surfaced(self):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("timeout"))

        with pytest.raises(AccessStatusUnavailableError):
            BootstrapStatusService(session).get_bootstrap_status("user-1")
