"""Pytest fixtures for testing"""

import pytest
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from deposit_ledger.api.main import create_app
from deposit_ledger.domain.models import Caller, Role
from deposit_ledger.infrastructure.database.models import Account, Base, Deposit, User
from deposit_ledger.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Mid-month, mid-day, so day and month periods are unambiguous
FIXED_NOW = datetime(2025, 3, 15, 10, 30)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now: datetime) -> Callable[[], datetime]:
    return lambda: fixed_now


@dataclass
class Hierarchy:
    """admin; manager -> agent -> client; other_agent -> other_client (no manager)"""

    admin: User
    manager: User
    agent: User
    client: User
    other_agent: User
    other_client: User

    def caller(self, name: str) -> Caller:
        user = getattr(self, name)
        return Caller(id=user.id, role=Role(user.role))

    def headers(self, name: str) -> dict:
        user = getattr(self, name)
        return {"X-Caller-Id": user.id, "X-Caller-Role": user.role}


@pytest.fixture
def hierarchy(db: Session) -> Hierarchy:
    """Users wired through the assignment chain"""
    admin = User(name="Asha Admin", role=Role.ADMIN.value)
    manager = User(name="Mohan Manager", role=Role.MANAGER.value)
    db.add_all([admin, manager])
    db.flush()

    agent = User(name="Arun Agent", role=Role.AGENT.value, assigned_to=manager.id)
    other_agent = User(name="Olga Agent", role=Role.AGENT.value)
    db.add_all([agent, other_agent])
    db.flush()

    client = User(name="Chitra Client", role=Role.USER.value, assigned_to=agent.id)
    other_client = User(name="Omar Client", role=Role.USER.value, assigned_to=other_agent.id)
    db.add_all([client, other_client])
    db.commit()

    return Hierarchy(admin, manager, agent, client, other_agent, other_client)


@pytest.fixture
def make_account(db: Session, hierarchy: Hierarchy) -> Callable[..., Account]:
    """Factory for accounts owned by the hierarchy's client unless told otherwise"""
    counter = {"n": 0}

    def _make(payment_mode: str = "Monthly", owner: User | None = None, agent: User | None = None, **fields) -> Account:
        counter["n"] += 1
        owner = owner or hierarchy.client
        agent = agent or hierarchy.agent
        account = Account(
            account_number=f"RD-{counter['n']:04d}",
            client_name=owner.name,
            user_id=owner.id,
            assigned_agent=agent.id,
            payment_mode=payment_mode,
            **fields,
        )
        db.add(account)
        db.commit()
        return account

    return _make


@pytest.fixture
def add_deposit(db: Session, hierarchy: Hierarchy) -> Callable[..., Deposit]:
    """Seed a deposit directly, bypassing the ledger's checks"""

    def _add(account: Account, amount_cents: int, date: datetime = FIXED_NOW) -> Deposit:
        deposit = Deposit(
            account_id=account.id,
            user_id=account.user_id,
            collected_by=account.assigned_agent or hierarchy.agent.id,
            amount_cents=amount_cents,
            date=date,
            scheme_type=account.scheme_type or "RD",
        )
        db.add(deposit)
        db.commit()
        return deposit

    return _add
