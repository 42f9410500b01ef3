# Overview: Domain error taxonomy shared by services, routes and the CLI.

"""
Domain errors.

Every error raised from inside a unit of work aborts the whole unit, so the
caller never observes a partial stock or status change. Routes translate these
into JSON responses using ``status_code`` and ``to_dict()``.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for business-rule failures surfaced to callers."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": type(self).__name__,
            "details": self.details,
        }


class ValidationError(DomainError, ValueError):
    """400-level input problem, raised before any transaction starts."""


class UnauthorizedError(DomainError):
    """Role or ownership check failed."""

    status_code = 403


class NotFoundError(DomainError):
    """Order, product, store or user does not exist."""

    status_code = 404


class InvalidTransitionError(DomainError):
    """Order status guard failed."""

    status_code = 409

    def __init__(self, order_id: int, current_status: str | None, target_status: str):
        super().__init__(
            f"Cannot move order {order_id} from '{current_status}' to '{target_status}'",
            details={
                "order_id": order_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )
        self.order_id = order_id
        self.current_status = current_status
        self.target_status = target_status


class InsufficientStockError(DomainError):
    """Stock guard failed; carries the current and requested quantities."""

    status_code = 409

    def __init__(self, product_id: int, available: int, needed: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: available {available}, needed {needed}",
            details={
                "product_id": product_id,
                "available": available,
                "needed": needed,
            },
        )
        self.product_id = product_id
        self.available = available
        self.needed = needed
