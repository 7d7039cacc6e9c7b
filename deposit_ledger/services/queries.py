"""Read-only deposit queries filtered by the caller's scope"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from deposit_ledger.domain.exceptions import NotFoundError, PolicyRejection, ReasonCode
from deposit_ledger.domain.models import Caller, Role
from deposit_ledger.infrastructure.database.models import Deposit
from deposit_ledger.infrastructure.database.repositories import DepositRepository
from deposit_ledger.services.scope import ScopeResolver
from deposit_ledger.utils.date_utils import day_bounds, parse_datetime, utcnow


def _parse_bound(value: str, end_of_range: bool = False) -> datetime:
    """Parse a query bound; a bare date used as an upper bound covers that whole day"""
    try:
        parsed = parse_datetime(value)
    except (TypeError, ValueError):
        raise PolicyRejection(ReasonCode.INVALID_DATE, "Invalid date format. Use YYYY-MM-DD") from None
    if end_of_range and len(value.strip()) == 10:
        return day_bounds(parsed)[1]
    return parsed


class DepositQueryService:
    """
    Deposit listings restricted to what the caller may see.

    Manager: deposits collected by their agents. Agent: deposits they
    collected. User: their own deposits. Admin: everything.
    """

    def __init__(
        self,
        db: Session,
        scope_resolver: Optional[ScopeResolver] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.deposits = DepositRepository(db)
        self.scope_resolver = scope_resolver or ScopeResolver(db)
        self.clock = clock

    def _scope_filter(self, caller: Caller) -> Dict[str, Any]:
        scope = self.scope_resolver.scope_for(caller)
        if scope.is_all:
            return {}
        if caller.role == Role.MANAGER:
            return {"collected_by": scope.agents}
        if caller.role == Role.AGENT:
            return {"collected_by": [caller.id]}
        return {"user_id": caller.id}

    def list_deposits(
        self,
        caller: Caller,
        date: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Deposit]:
        """All visible deposits; date="today" or a start/end pair narrows the range"""
        filters = self._scope_filter(caller)
        if date == "today":
            filters["start"], filters["end"] = day_bounds(self.clock())
        elif start_date and end_date:
            filters["start"] = _parse_bound(start_date)
            filters["end"] = _parse_bound(end_date, end_of_range=True)
        return self.deposits.list_filtered(**filters)

    def deposits_for_account(self, caller: Caller, account_id: str) -> List[Deposit]:
        """
        Visible deposits of one account.

        Raises:
            NotFoundError: When the caller can see no deposit on the account
        """
        deposits = self.deposits.list_filtered(account_id=account_id, **self._scope_filter(caller))
        if not deposits:
            raise NotFoundError(ReasonCode.DEPOSIT_NOT_FOUND, "No deposits found for this account")
        return deposits

    def deposits_in_range(self, caller: Caller, date_from: Optional[str], date_to: Optional[str]) -> List[Deposit]:
        """
        Visible deposits dated between date_from and date_to (inclusive).

        Raises:
            PolicyRejection: When a bound is missing or unparseable
        """
        if not date_from or not date_to:
            raise PolicyRejection(
                ReasonCode.INVALID_DATE,
                "Both 'from' and 'to' dates are required (YYYY-MM-DD)",
            )
        return self.deposits.list_filtered(
            start=_parse_bound(date_from),
            end=_parse_bound(date_to, end_of_range=True),
            **self._scope_filter(caller),
        )
