import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def compute_signature(message: str | bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``message`` keyed with ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(message: str | bytes, signature: str | None, secret: str) -> bool:
    """Return True when ``signature`` is the HMAC of ``message`` under ``secret``.

    Never raises: a failed or malformed verification is a normal outcome.
    """
    if not signature or not secret:
        return False
    try:
        expected = compute_signature(message, secret).encode("ascii")
        received = signature.strip().encode("ascii")
    except (TypeError, ValueError, UnicodeError) as exc:
        logger.warning("Signature verification error: %s", exc)
        return False
    if len(expected) != len(received):
        return False
    return hmac.compare_digest(expected, received)


def payment_signature_message(gateway_reference_id: str, gateway_payment_id: str) -> str:
    return f"{gateway_reference_id}|{gateway_payment_id}"


def verify_payment_signature(
    gateway_reference_id: str,
    gateway_payment_id: str,
    signature: str | None,
    secret: str,
) -> bool:
    """Verify the ``{reference}|{payment}`` signature sent with checkout callbacks."""
    message = payment_signature_message(gateway_reference_id, gateway_payment_id)
    return verify_signature(message, signature, secret)


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """Verify the signature the gateway puts in ``X-Signature`` over the raw webhook body."""
    return verify_signature(raw_body, signature, secret)
