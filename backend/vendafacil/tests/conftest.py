"""
Root test configuration and fixtures.

Each test gets a fresh SQLite in-memory database. Handlers under test
commit and roll back for real, so there is no outer transaction to
unwind; the engine is dropped instead.
"""

import os
import tempfile
import uuid
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Generator

import jwt
import pytest
import yaml
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENV", "test")

from vendafacil.config.plan_catalog import reset_plan_catalog
from vendafacil.config.settings import Settings, get_settings
from vendafacil.database.session import reset_engine

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
TEST_HOTTOK = "test-hottok-secret"
TEST_JWT_SECRET = "test-supabase-jwt-secret-with-enough-bytes"


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Settings, the engine and the plan catalog are process-wide caches."""
    get_settings.cache_clear()
    reset_plan_catalog()
    reset_engine()
    yield
    get_settings.cache_clear()
    reset_plan_catalog()
    reset_engine()


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from vendafacil.db_base import Base
    from vendafacil import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fixed_now():
    return lambda: FIXED_NOW


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        env="test",
        database_url="sqlite:///:memory:",
        hotmart_webhook_secret=TEST_HOTTOK,
        hotmart_require_event_id=False,
        hotmart_unknown_plan_fallback=True,
        supabase_jwt_secret=TEST_JWT_SECRET,
        supabase_jwt_audience="authenticated",
        plans_config_path=None,
    )


# =============================================================================
# Tenant data factories
# =============================================================================


@pytest.fixture
def make_user(db_session):
    from vendafacil.models.user import User

    def _make(is_admin: bool = False, user_id: str = None) -> User:
        user = User(
            id=user_id or str(uuid.uuid4()),
            email=f"user-{uuid.uuid4().hex[:8]}@example.com",
            is_admin=is_admin,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def make_store(db_session):
    from vendafacil.models.store import Store

    def _make(owner, trial_used: bool = False, store_id: str = None) -> Store:
        store = Store(
            id=store_id or str(uuid.uuid4()),
            user_id=owner.id,
            name=f"Loja {uuid.uuid4().hex[:6]}",
            trial_used=trial_used,
        )
        db_session.add(store)
        db_session.commit()
        return store
    return _make


@pytest.fixture
def make_member(db_session):
    from vendafacil.models.store import StoreMember

    def _make(store, user, role: str = "staff") -> StoreMember:
        member = StoreMember(store_id=store.id, user_id=user.id, role=role)
        db_session.add(member)
        db_session.commit()
        return member
    return _make


@pytest.fixture
def make_access(db_session):
    from vendafacil.models.store_access import StoreAccess

    def _make(
        store_id: str,
        status: str = "ativo",
        plano_tipo: str = "mensal",
        plano_nome: str = "Mensal",
        ends_at: datetime = None,
        starts_at: datetime = None,
        origem: str = "hotmart",
    ) -> StoreAccess:
        access = StoreAccess(
            store_id=store_id,
            plano_nome=plano_nome,
            plano_tipo=plano_tipo,
            data_inicio_acesso=starts_at or datetime.now(timezone.utc) - timedelta(days=1),
            data_fim_acesso=ends_at,
            status_acesso=status,
            origem=origem,
            renovavel=True,
        )
        db_session.add(access)
        db_session.commit()
        return access
    return _make


# =============================================================================
# API client
# =============================================================================


@pytest.fixture
def make_token():
    """Factory for Supabase-style access tokens signed with the test secret."""
    def _make(user_id: str, expires_in: int = 3600, audience: str = "authenticated", **claims) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "aud": audience,
            "role": "authenticated",
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
            **claims,
        }
        return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _make(user) -> dict:
        return {"Authorization": f"Bearer {make_token(user.id)}"}
    return _make


@pytest.fixture
def client(db_session, test_settings):
    """TestClient wired to the per-test database and settings."""
    from fastapi.testclient import TestClient

    from main import app
    from vendafacil.database.session import get_db_session

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db_session] = _get_db
    app.dependency_overrides[get_settings] = lambda: test_settings

    yield TestClient(app)

    app.dependency_overrides.clear()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")


# =============================================================================
# Config fixtures
# =============================================================================


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for YAML config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_yaml_config(temp_config_dir):
    """
    Factory fixture that writes a YAML config file and returns its path.

    Usage:
        config_path = make_yaml_config("plans.yml", {"plans": {...}})
    """
    def _make(filename: str, config: dict) -> Path:
        config_path = temp_config_dir / filename
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(config, f, allow_unicode=True)
        return config_path
    return _make
