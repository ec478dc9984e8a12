"""
Unit tests for access-status evaluation.

evaluate_access() is pure; StoreAccess rows are built in memory.
"""

from datetime import datetime, timezone, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from vendafacil.models.store_access import StoreAccess
from vendafacil.services.access_status import (
    AccessStatusService,
    AccessStatusUnavailableError,
    evaluate_access,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _access(status="ativo", plano_tipo="mensal", plano_nome="Mensal", ends_at=None):
    return StoreAccess(
        store_id="store-1",
        plano_nome=plano_nome,
        plano_tipo=plano_tipo,
        data_inicio_acesso=NOW - timedelta(days=10),
        data_fim_acesso=ends_at,
        status_acesso=status,
        origem="hotmart",
        renovavel=True,
    )


class TestEvaluateAccess:

    def test_no_record(self):
        status = evaluate_access(None, NOW)

        assert status.acesso_liberado is False
        assert status.plano_nome == "Sem Plano"
        assert status.plano_tipo is None
        assert status.data_fim_acesso is None
        assert "não possui um plano" in status.mensagem

    def test_active_with_future_end(self):
        status = evaluate_access(_access(ends_at=NOW + timedelta(days=5)), NOW)

        assert status.acesso_liberado is True
        assert status.plano_nome == "Mensal"
        assert status.plano_tipo == "mensal"
        assert "06/03/2026" in status.mensagem

    def test_active_without_end_never_expires(self):
        status = evaluate_access(
            _access(plano_tipo="vitalicio", plano_nome="Vitalício", ends_at=None), NOW
        )

        assert status.acesso_liberado is True
        assert status.data_fim_acesso is None

    def test_stale_active_row_is_expired(self):
        access = _access(status="ativo", ends_at=NOW - timedelta(seconds=1))

        status = evaluate_access(access, NOW)

        assert status.acesso_liberado is False
        assert "expirou" in status.mensagem
        # Read-time expiry never rewrites the row
        assert access.status_acesso == "ativo"

    def test_end_equal_to_now_is_expired(self):
        status = evaluate_access(_access(ends_at=NOW), NOW)

        assert status.acesso_liberado is False

    def test_expired_status(self):
        status = evaluate_access(_access(status="expirado", ends_at=NOW + timedelta(days=3)), NOW)

        assert status.acesso_liberado is False
        assert "expirou" in status.mensagem

    def test_expired_trial_reports_trial_expirado(self):
        access = _access(plano_tipo="trial", plano_nome="Avaliação", ends_at=NOW - timedelta(days=1))

        status = evaluate_access(access, NOW)

        assert status.acesso_liberado is False
        assert status.plano_nome == "Trial Expirado"
        assert "expirou" in status.mensagem

    def test_blocked_even_before_end(self):
        status = evaluate_access(_access(status="bloqueado", ends_at=NOW + timedelta(days=20)), NOW)

        assert status.acesso_liberado is False
        assert "bloqueado" in status.mensagem
        assert status.data_fim_acesso == NOW + timedelta(days=20)

    def test_awaiting_release(self):
        status = evaluate_access(_access(status="aguardando_liberacao"), NOW)

        assert status.acesso_liberado is False
        assert "aguardando" in status.mensagem

    def test_naive_datetimes_are_utc(self):
        naive_end = (NOW + timedelta(hours=1)).replace(tzinfo=None)

        status = evaluate_access(_access(ends_at=naive_end), NOW)

        assert status.acesso_liberado is True
        assert status.data_fim_acesso.tzinfo is not None

    def test_same_inputs_same_output(self):
        access = _access(ends_at=NOW + timedelta(days=1))

        assert evaluate_access(access, NOW) == evaluate_access(access, NOW)


class TestAccessStatusService:

    def test_reads_fresh_row(self, db_session, make_access):
        make_access("store-1", ends_at=NOW + timedelta(days=2))
        service = AccessStatusService(db_session)

        assert service.get_access_status("store-1", now=NOW).acesso_liberado is True

        make_access("store-2", status="bloqueado")
        assert service.get_access_status("store-2", now=NOW).acesso_liberado is False

    def test_missing_row(self, db_session):
        status = AccessStatusService(db_session).get_access_status("unknown", now=NOW)

        assert status.plano_nome == "Sem Plano"

    def test_database_error_is_surfaced(self):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

        with pytest.raises(AccessStatusUnavailableError):
            AccessStatusService(session).get_access_status("store-1", now=NOW)
