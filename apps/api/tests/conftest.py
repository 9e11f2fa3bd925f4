from __future__ import annotations

from collections.abc import Callable, Generator
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from salescrm import audit, events
from salescrm.core.auth import create_access_token, hash_password
from salescrm.core.config import get_settings
from salescrm.core.database import Base, get_db
from salescrm.crm.models import CallLog, Prospect, Sale
from salescrm.identity import ownership
from salescrm.identity.models import Team, User
from salescrm.identity.roles import Role
from salescrm.main import app
from salescrm.middleware.rate_limit import reset_rate_limiter
from salescrm.payouts import models as payout_models  # noqa: F401
from salescrm.platform.security.context import AuthContext
from salescrm.transfer import models as transfer_models  # noqa: F401


TEST_PASSWORD = "correct-horse-1"
SIGNUP_REFS = {
    Role.MANAGER: "MGR-REF-001",
    Role.TEAM_LEAD: "TL-REF-001",
    Role.SALES_EXECUTIVE: "EXEC-REF-001",
}


@dataclass
class Org:
    """Manager -> two team leads -> three executives, all committed."""

    manager: User
    lead_a: User
    lead_b: User
    team_a: Team
    team_b: Team
    exec_a1: User
    exec_a2: User
    exec_b1: User


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("MANAGER_SIGNUP_REF_ID", SIGNUP_REFS[Role.MANAGER])
    monkeypatch.setenv("TEAM_LEAD_SIGNUP_REF_ID", SIGNUP_REFS[Role.TEAM_LEAD])
    monkeypatch.setenv("EXECUTIVE_SIGNUP_REF_ID", SIGNUP_REFS[Role.SALES_EXECUTIVE])
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("PASSWORD_HASH_ROUNDS", "4")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    reset_rate_limiter()
    audit.audit_entries.clear()
    events.published_events.clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def factory(role: Role, name: str, **values: Any) -> User:
        user = User(
            name=name,
            email=values.pop("email", f"{name.lower().replace(' ', '.')}@acme-sales.com"),
            password_hash=hash_password(values.pop("password", TEST_PASSWORD)),
            role=role.value,
            ref_id=values.pop("ref_id", f"REF-{name.upper().replace(' ', '-')}"),
            **values,
        )
        db_session.add(user)
        db_session.flush()
        return user

    return factory


@pytest.fixture()
def org(db_session: Session, make_user: Callable[..., User]) -> Org:
    manager = make_user(Role.MANAGER, "Maya Manager")
    lead_a = make_user(Role.TEAM_LEAD, "Tara Lead")
    lead_b = make_user(Role.TEAM_LEAD, "Theo Lead")
    ownership.set_team_lead_manager(db_session, lead_a, manager)
    ownership.set_team_lead_manager(db_session, lead_b, manager)
    team_a = ownership.create_team(db_session, lead_a, "Alpha")
    team_b = ownership.create_team(db_session, lead_b, "Beta")

    exec_a1 = make_user(Role.SALES_EXECUTIVE, "Ada Exec")
    exec_a2 = make_user(Role.SALES_EXECUTIVE, "Abe Exec")
    exec_b1 = make_user(Role.SALES_EXECUTIVE, "Bea Exec")
    ownership.assign_executive(db_session, exec_a1, lead_a)
    ownership.assign_executive(db_session, exec_a2, lead_a)
    ownership.assign_executive(db_session, exec_b1, lead_b)
    db_session.commit()

    return Org(
        manager=manager,
        lead_a=lead_a,
        lead_b=lead_b,
        team_a=team_a,
        team_b=team_b,
        exec_a1=exec_a1,
        exec_a2=exec_a2,
        exec_b1=exec_b1,
    )


@pytest.fixture()
def make_prospect(db_session: Session) -> Callable[..., Prospect]:
    def factory(owner: User, company_name: str = "Acme", client_name: str = "Bob", **values: Any) -> Prospect:
        prospect = Prospect(
            company_name=company_name,
            client_name=client_name,
            **ownership.owner_pointers(owner).as_values(),
            **values,
        )
        db_session.add(prospect)
        db_session.commit()
        return prospect

    return factory


@pytest.fixture()
def make_sale(db_session: Session) -> Callable[..., Sale]:
    def factory(owner: User, amount: str = "100.00", client_name: str = "Bob", **values: Any) -> Sale:
        sale = Sale(
            company_name=values.pop("company_name", "Acme"),
            client_name=client_name,
            amount=Decimal(amount),
            **ownership.owner_pointers(owner).as_values(),
            **values,
        )
        db_session.add(sale)
        db_session.commit()
        return sale

    return factory


@pytest.fixture()
def make_call_log(db_session: Session) -> Callable[..., CallLog]:
    def factory(owner: User, activity: str = "Called", **values: Any) -> CallLog:
        call_log = CallLog(
            company_name=values.pop("company_name", "Acme"),
            client_name=values.pop("client_name", "Bob"),
            activity=activity,
            sales_executive_id=owner.id,
            **values,
        )
        db_session.add(call_log)
        db_session.commit()
        return call_log

    return factory


def context_for(user: User) -> AuthContext:
    return AuthContext(user_id=user.id, role=user.role_enum, correlation_id="test-corr")


def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture()
def ctx_for() -> Callable[[User], AuthContext]:
    return context_for


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    return headers_for


def utc(year: int, month: int, day: int, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture()
def at() -> Callable[..., datetime]:
    return utc
