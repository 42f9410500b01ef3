# Overview: Roles, the acting user, and role/ownership checks used by every service.

"""
Role model

    officer        Marketing officer. Owns stores, builds and submits orders
                   for them, records payments and dues for them.
    admin          Approves orders, rejects orders, deletes any order,
                   corrects stock, sees every store.
    stock-manager  Rejects and fulfills orders, corrects stock.

Services never read request-global state; the acting user is passed in
explicitly as an Actor.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import UnauthorizedError


ROLE_OFFICER = "officer"
ROLE_ADMIN = "admin"
ROLE_STOCK_MANAGER = "stock-manager"

VALID_ROLES = (ROLE_OFFICER, ROLE_ADMIN, ROLE_STOCK_MANAGER)

USER_STATUSES = ("pending", "active", "suspended", "rejected")


# Action -> roles allowed to perform it
ROLE_PERMISSIONS = {
    "CREATE_ORDER": {ROLE_OFFICER, ROLE_ADMIN},
    "APPROVE_ORDER": {ROLE_ADMIN},
    "REJECT_ORDER": {ROLE_ADMIN, ROLE_STOCK_MANAGER},
    "FULFILL_ORDER": {ROLE_STOCK_MANAGER},
    "DELETE_ORDER": {ROLE_ADMIN},
    "VIEW_ALL_ORDERS": {ROLE_ADMIN, ROLE_STOCK_MANAGER},
    "ADJUST_STOCK": {ROLE_ADMIN, ROLE_STOCK_MANAGER},
    "RECORD_PAYMENT": {ROLE_OFFICER, ROLE_ADMIN},
    "RECORD_DUE": {ROLE_OFFICER, ROLE_ADMIN},
    "VIEW_ALL_BALANCES": {ROLE_ADMIN, ROLE_STOCK_MANAGER},
}


@dataclass(frozen=True)
class Actor:
    """The user performing an operation."""
    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(id=user.id, role=user.role)


def has_permission(actor: Actor, action: str) -> bool:
    return actor.role in ROLE_PERMISSIONS.get(action, set())


def require_permission(actor: Actor, action: str) -> None:
    if not has_permission(actor, action):
        raise UnauthorizedError(
            f"Role '{actor.role}' may not perform {action}",
            details={"actor_id": actor.id, "role": actor.role, "required_permission": action},
        )


def require_store_access(actor: Actor, store) -> None:
    """Officers act only on stores assigned to them; other roles see all stores."""
    if actor.role == ROLE_OFFICER and store.officer_id != actor.id:
        raise UnauthorizedError(
            f"Store {store.id} is not assigned to officer {actor.id}",
            details={"actor_id": actor.id, "store_id": store.id},
        )
