"""HMAC-SHA256 webhook signatures in the ``v1=<hex>`` format."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

from ..constants import SIGNATURE_VERSION

logger = logging.getLogger(__name__)


def compute_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_signature(signature: Optional[str], body: bytes, secret: Optional[str]) -> bool:
    """Check ``signature`` against the HMAC of the exact raw ``body``."""
    if not signature or not secret:
        logger.warning("Missing signature or secret for webhook verification")
        return False

    version, sep, received = signature.partition("=")
    if not sep or version != SIGNATURE_VERSION or "=" in received:
        logger.warning("Invalid signature format")
        return False

    expected = compute_signature(body, secret).partition("=")[2]
    return hmac.compare_digest(received.lower().encode("utf-8"), expected.encode("utf-8"))
