# Overview: Domain exception taxonomy shared by services and routes.

from __future__ import annotations


class LedgerError(Exception):
    """Base for errors raised by ledger operations; carries display details."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LedgerError):
    """400-level input problem."""
    http_status = 400


class NotFoundError(LedgerError):
    """Referenced product, customer or closing does not exist."""
    http_status = 404


class ConflictError(LedgerError):
    """409-level business rule conflict (duplicate closing, lost concurrent update)."""
    http_status = 409


class InsufficientStockError(ConflictError):
    """Requested quantity exceeds the product's current stock."""

    def __init__(self, product_id: int, product_name: str, requested, available):
        super().__init__(
            f"Insufficient stock for {product_name}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": str(requested),
                "available": str(available),
            },
        )


class OverpaymentError(ConflictError):
    """Payment amount exceeds the customer's current debt."""

    def __init__(self, customer_id: int, amount, current_debt):
        super().__init__(
            f"Payment of ${amount} exceeds current debt of ${current_debt}",
            details={
                "customer_id": customer_id,
                "amount": str(amount),
                "current_debt": str(current_debt),
            },
        )


class InternalError(LedgerError):
    """Store or transport failure; the unit of work was rolled back."""
    http_status = 500
