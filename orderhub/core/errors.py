from __future__ import annotations


class OrderFlowError(Exception):
    """Base class for typed domain errors returned to callers."""

    code = "order_flow_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(OrderFlowError):
    code = "not_found"
    status_code = 404


class InvalidTransition(OrderFlowError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, message: str, *, current: str | None = None, requested: str | None = None) -> None:
        super().__init__(message)
        self.current = current
        self.requested = requested


class OrderNotDeletable(OrderFlowError):
    code = "order_not_deletable"
    status_code = 409


class PaymentRequired(OrderFlowError):
    code = "payment_required"
    status_code = 402


class BillAlreadyExists(OrderFlowError):
    code = "bill_already_exists"
    status_code = 409


class ValidationError(OrderFlowError):
    code = "validation_error"
    status_code = 422


class DeliveryFailure(OrderFlowError):
    """Exhausted webhook delivery. Stored on the delivery record, never raised to publishers."""

    code = "delivery_failure"
    status_code = 502


class AutomationBackendError(OrderFlowError):
    code = "automation_backend_error"
    status_code = 502
