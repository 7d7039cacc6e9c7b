"""Integration tests for scoped deposit queries and the maturity sweep"""

import pytest
from datetime import datetime, timedelta
from deposit_ledger.domain.exceptions import NotFoundError, PolicyRejection, ReasonCode
from deposit_ledger.infrastructure.database.repositories import AuditRepository
from deposit_ledger.services.maturity import sweep_matured_accounts
from deposit_ledger.services.queries import DepositQueryService


@pytest.fixture
def queries(db, clock) -> DepositQueryService:
    return DepositQueryService(db, clock=clock)


@pytest.fixture
def seeded(hierarchy, make_account, add_deposit, fixed_now):
    """One deposit today by agent, one last month by agent, one today by other_agent"""
    own = make_account("Daily", total_payable_cents=360_000, monthly_target_cents=30_000)
    foreign = make_account(
        "Daily",
        owner=hierarchy.other_client,
        agent=hierarchy.other_agent,
        total_payable_cents=360_000,
        monthly_target_cents=30_000,
    )
    return {
        "today": add_deposit(own, 1_000),
        "last_month": add_deposit(own, 2_000, date=datetime(2025, 2, 10, 8, 0)),
        "foreign": add_deposit(foreign, 3_000),
        "own_account": own,
        "foreign_account": foreign,
    }


def ids(deposits) -> set:
    return {d.id for d in deposits}


def test_admin_sees_everything(queries, hierarchy, seeded):
    deposits = queries.list_deposits(hierarchy.caller("admin"))
    assert len(deposits) == 3
    # Newest first
    assert deposits[-1].id == seeded["last_month"].id


def test_agent_sees_own_collections(queries, hierarchy, seeded):
    deposits = queries.list_deposits(hierarchy.caller("agent"))
    assert ids(deposits) == {seeded["today"].id, seeded["last_month"].id}


def test_manager_sees_their_agents_collections(queries, hierarchy, seeded):
    deposits = queries.list_deposits(hierarchy.caller("manager"))
    assert ids(deposits) == {seeded["today"].id, seeded["last_month"].id}


def test_client_sees_own_deposits(queries, hierarchy, seeded):
    deposits = queries.list_deposits(hierarchy.caller("other_client"))
    assert ids(deposits) == {seeded["foreign"].id}


def test_today_filter(queries, hierarchy, seeded):
    deposits = queries.list_deposits(hierarchy.caller("agent"), date="today")
    assert ids(deposits) == {seeded["today"].id}


def test_start_end_filter(queries, hierarchy, seeded):
    """Test a bare end date covers that whole day"""
    deposits = queries.list_deposits(hierarchy.caller("admin"), start_date="2025-02-01", end_date="2025-02-10")
    assert ids(deposits) == {seeded["last_month"].id}


def test_deposits_for_account(queries, hierarchy, seeded):
    deposits = queries.deposits_for_account(hierarchy.caller("admin"), seeded["own_account"].id)
    assert len(deposits) == 2


def test_deposits_for_account_outside_scope(queries, hierarchy, seeded):
    """Test an account with no visible deposits reads as not found"""
    with pytest.raises(NotFoundError) as exc_info:
        queries.deposits_for_account(hierarchy.caller("agent"), seeded["foreign_account"].id)
    assert exc_info.value.reason == ReasonCode.DEPOSIT_NOT_FOUND


def test_deposits_in_range_inclusive(queries, hierarchy, seeded):
    deposits = queries.deposits_in_range(hierarchy.caller("admin"), "2025-03-15", "2025-03-15")
    assert ids(deposits) == {seeded["today"].id, seeded["foreign"].id}


@pytest.mark.parametrize("date_from,date_to", [(None, "2025-03-15"), ("2025-03-01", None), ("March", "2025-03-15")])
def test_deposits_in_range_invalid_bounds(queries, hierarchy, date_from, date_to):
    with pytest.raises(PolicyRejection) as exc_info:
        queries.deposits_in_range(hierarchy.caller("admin"), date_from, date_to)
    assert exc_info.value.reason == ReasonCode.INVALID_DATE


def test_maturity_sweep(db, hierarchy, make_account, fixed_now):
    """Test due accounts are marked Matured once, with an audit event each"""
    due = make_account(
        "Monthly",
        total_payable_cents=120_000,
        installment_cents=10_000,
        maturity_date=fixed_now - timedelta(days=1),
    )
    make_account(
        "Monthly",
        total_payable_cents=120_000,
        installment_cents=10_000,
        maturity_date=fixed_now + timedelta(days=30),
    )

    matured = sweep_matured_accounts(db, now=fixed_now, performed_by=hierarchy.admin.id)

    assert [a.id for a in matured] == [due.id]
    db.refresh(due)
    assert due.status == "Matured"

    events = AuditRepository(db).list_events(action="ACCOUNT_MATURED")
    assert len(events) == 1
    assert events[0].entity_id == due.id
    assert events[0].details["old_status"] == "Inactive"

    assert sweep_matured_accounts(db, now=fixed_now) == []
