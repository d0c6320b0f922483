"""Webhook signature verification for LINE (HMAC-SHA256) and Discord (Ed25519)."""

import base64
import hashlib
import hmac
import logging
from typing import NamedTuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey


logger = logging.getLogger(__name__)


class WebhookSecurityResult(NamedTuple):
    """Result of webhook security validation."""

    is_valid: bool
    error_message: str | None
    http_status_code: int | None


_VALID = WebhookSecurityResult(is_valid=True, error_message=None, http_status_code=None)


def _reject(message: str) -> WebhookSecurityResult:
    logger.warning("Webhook signature rejected: %s", message, extra={"reason": message})
    return WebhookSecurityResult(is_valid=False, error_message=message, http_status_code=401)


def validate_line_signature(
    raw_body: bytes, signature: str | None, channel_secret: str | None
) -> WebhookSecurityResult:
    """Check ``X-Line-Signature``: base64(HMAC-SHA256(channel_secret, raw_body)).

    Args:
        raw_body: Request body exactly as received
        signature: Header value
        channel_secret: LINE channel secret

    Returns:
        WebhookSecurityResult (401 on any failure)
    """
    if not channel_secret:
        return _reject("LINE channel secret not configured")
    if not signature:
        return _reject("Missing LINE signature")

    digest = hmac.new(channel_secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    if not hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("ascii", errors="replace")):
        return _reject("Invalid LINE signature")
    return _VALID


def validate_discord_signature(
    raw_body: bytes,
    signature_hex: str | None,
    timestamp: str | None,
    public_key_hex: str | None,
) -> WebhookSecurityResult:
    """Check ``X-Signature-Ed25519`` over ``timestamp + raw_body``.

    Args:
        raw_body: Request body exactly as received
        signature_hex: ``X-Signature-Ed25519`` header (hex)
        timestamp: ``X-Signature-Timestamp`` header
        public_key_hex: Application public key (hex)

    Returns:
        WebhookSecurityResult (401 on any failure)
    """
    if not public_key_hex:
        return _reject("Discord public key not configured")
    if not signature_hex or not timestamp:
        return _reject("Missing Discord signature headers")

    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        public_key.verify(bytes.fromhex(signature_hex), timestamp.encode("utf-8") + raw_body)
    except (ValueError, InvalidSignature):
        return _reject("Invalid Discord signature")
    return _VALID
