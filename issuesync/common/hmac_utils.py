"""HMAC utilities for webhook signature validation."""

import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_hmac_sha256(data: bytes, secret: str) -> str:
    """Compute the lowercase hex HMAC-SHA256 of data keyed with secret."""
    return hmac.new(
        secret.encode("utf-8"),
        data,
        hashlib.sha256
    ).hexdigest()


def sign_payload(data: bytes, secret: str) -> str:
    """Return the signature header value GitHub would send for data."""
    return SIGNATURE_PREFIX + compute_hmac_sha256(data, secret)


def verify_hmac_signature(data: bytes, signature_header: Optional[str], secret: Optional[str]) -> bool:
    """Verify an X-Hub-Signature-256 header against the raw request body.

    ``data`` must be the body exactly as received. Verification fails
    closed: with no secret configured every signature is rejected.
    """
    if not secret:
        logger.error("Webhook secret was not loaded from settings")
        return False

    if not signature_header:
        return False

    expected = sign_payload(data, secret)

    # Constant-time comparison over the full prefixed value
    return hmac.compare_digest(
        signature_header.encode("utf-8"),
        expected.encode("utf-8"),
    )
