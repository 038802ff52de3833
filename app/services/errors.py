from typing import Any


class OrderWorkflowError(Exception):
    """Base for domain errors rendered as ``{"success": false, ...}`` envelopes."""

    status_code = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra


class InvalidTransition(OrderWorkflowError):
    status_code = 400


class Unauthorized(OrderWorkflowError):
    status_code = 403


class VerificationRequired(OrderWorkflowError):
    status_code = 403

    def __init__(self, message: str = "Account verification required"):
        super().__init__(message, requiresVerification=True)


class OrderNotFound(OrderWorkflowError):
    status_code = 404


class PaymentNotFound(OrderWorkflowError):
    status_code = 404


class RefundAmountExceeded(OrderWorkflowError):
    status_code = 400


class PaymentVerificationFailed(OrderWorkflowError):
    status_code = 400


class ReviewAlreadyCompleted(OrderWorkflowError):
    status_code = 409
