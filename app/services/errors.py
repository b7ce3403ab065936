"""Checkout error taxonomy.

Every error carries a stable ``code`` and a message that is safe to show to
the storefront. Internal details go to the log, never into ``message``.
"""

from fastapi import status


class CheckoutError(Exception):
    code = "checkout_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Checkout request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(CheckoutError):
    code = "invalid_request"
    default_message = "Invalid checkout request"


class PaymentGatewayError(CheckoutError):
    code = "payment_gateway_error"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Payment service is unavailable, please try again"


class InvalidSignature(CheckoutError):
    """Evidence failed HMAC verification.

    Logged as a security event. The storefront only ever sees a generic
    message, never "your payment failed".
    """

    code = "invalid_signature"
    default_message = "Payment could not be verified"

    def __init__(self, channel: str, reference_id: str | None = None):
        self.channel = channel
        self.reference_id = reference_id
        super().__init__()


class PendingOrderNotFound(CheckoutError):
    code = "pending_order_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Pending order not found"

    def __init__(self, reference_id: str):
        self.reference_id = reference_id
        super().__init__()


class InvalidTransition(CheckoutError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Action is not allowed in the current state"


class MaterializationPartialFailure(CheckoutError):
    """An order line could not be fulfilled from stock or the product is gone.

    Never propagated to the caller: the order is still created and flagged
    for manual reconciliation.
    """

    code = "materialization_partial_failure"

    def __init__(self, product_id, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"product {product_id}: {reason}")


class DuplicatePayment(CheckoutError):
    """Lost the insert race on ``gateway_payment_ref``; treated as success."""

    code = "duplicate_payment"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"payment {payment_id} already materialized")
