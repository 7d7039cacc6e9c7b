"""Scope resolution - which agents and clients a caller may act upon"""

from sqlalchemy.orm import Session

from deposit_ledger.domain.models import Caller, Role, Scope
from deposit_ledger.infrastructure.database.repositories import UserRepository


class ScopeResolver:
    """
    Resolve a caller's scope from the user assignment hierarchy.

    Admin sees everything; a Manager sees the agents assigned to them and
    those agents' clients; an Agent sees their own clients; a User sees only
    themselves.
    """

    def __init__(self, db: Session):
        self.users = UserRepository(db)

    def scope_for(self, caller: Caller) -> Scope:
        if caller.role == Role.ADMIN:
            return Scope(is_all=True)

        if caller.role == Role.MANAGER:
            agents = self.users.ids_assigned_to([caller.id], Role.AGENT.value)
            clients = self.users.ids_assigned_to(agents, Role.USER.value)
            return Scope(agents=agents, clients=clients)

        if caller.role == Role.AGENT:
            clients = self.users.ids_assigned_to([caller.id], Role.USER.value)
            return Scope(agents=[caller.id], clients=clients)

        return Scope(clients=[caller.id])
