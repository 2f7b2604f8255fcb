from __future__ import annotations

import base64
import os
import sys
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("PLANNING_JWT_SECRET", base64.urlsafe_b64encode(os.urandom(32)).decode())
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "60")

from backend.app import models
from backend.app.database import Base, enable_sqlite_savepoints, get_db
from backend.app.main import app
from backend.app.security import create_access_token
from backend.app.settings import ImportSettings

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    join_transaction_mode="create_savepoint",
)


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def import_settings() -> ImportSettings:
    return ImportSettings(preview_limit=10, max_records=1000)


@pytest.fixture
def company(db_session: Session) -> models.Company:
    tenant = models.Company(name="Empresa Demo")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def other_company(db_session: Session) -> models.Company:
    tenant = models.Company(name="Otra Empresa")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture
def make_profile(db_session: Session) -> Callable[..., models.Profile]:
    def _make_profile(
        company: models.Company,
        email: str,
        *,
        role: models.UserRole = models.UserRole.EMPLEADO,
        department: Optional[str] = None,
        full_name: Optional[str] = None,
        is_active: bool = True,
    ) -> models.Profile:
        profile = models.Profile(
            company_id=company.id,
            email=email,
            full_name=full_name or email.split("@")[0].title(),
            role=role,
            department=department,
            is_active=is_active,
        )
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make_profile


@pytest.fixture
def corporate_user(company, make_profile) -> models.Profile:
    return make_profile(
        company,
        "admin@empresa.com",
        role=models.UserRole.CORPORATIVO,
        department="Dirección",
        full_name="Admin Corporativo",
    )


@pytest.fixture
def sales_manager(company, make_profile) -> models.Profile:
    return make_profile(
        company,
        "gerente@empresa.com",
        role=models.UserRole.GERENTE,
        department="Ventas",
        full_name="Gerente Ventas",
    )


@pytest.fixture
def employee(company, make_profile) -> models.Profile:
    return make_profile(company, "empleado@empresa.com", department="Ventas")


def _bearer_headers(profile: models.Profile) -> dict[str, str]:
    token = create_access_token(str(profile.id), str(profile.company_id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers() -> Callable[[models.Profile], dict[str, str]]:
    return _bearer_headers


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)
