"""
Webhook signature validation for Meta platform deliveries.

Meta signs the raw request body with the app secret. Two header variants exist
and are tried in order: ``X-Hub-Signature-256`` (HMAC-SHA256) and the older
``X-Hub-Signature`` (HMAC-SHA1). Both carry ``<algo>=<hexdigest>``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

SIGNATURE_VARIANTS = (
    ("X-Hub-Signature-256", "sha256", hashlib.sha256),
    ("X-Hub-Signature", "sha1", hashlib.sha1),
)

SKIPPED_METHOD = "skipped"


@dataclass(frozen=True)
class SignatureCheck:
    valid: bool
    method: Optional[str] = None
    message: Optional[str] = None


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def compute_signature(body: bytes, secret: str, algorithm: str = "sha256") -> str:
    """Header value Meta would send for ``body``, e.g. ``sha256=ab12...``."""
    digestmod = hashlib.sha256 if algorithm == "sha256" else hashlib.sha1
    digest = hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()
    return f"{algorithm}={digest}"


def validate_webhook(
    headers: Mapping[str, str], body: bytes, secret: Optional[str]
) -> SignatureCheck:
    """Check the raw body against the signature headers using ``secret``."""
    if not secret:
        logger.warning(
            "META_APP_SECRET is not set; skipping webhook signature validation"
        )
        return SignatureCheck(valid=True, method=SKIPPED_METHOD)

    seen_header = False
    for header_name, algorithm, digestmod in SIGNATURE_VARIANTS:
        provided = _header(headers, header_name)
        if not provided:
            continue
        seen_header = True
        prefix, _, signature = provided.partition("=")
        if prefix.lower() != algorithm or not signature:
            continue
        expected = hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()
        if hmac.compare_digest(expected, signature.strip().lower()):
            return SignatureCheck(valid=True, method=header_name)

    if not seen_header:
        return SignatureCheck(valid=False, message="Missing signature header")
    return SignatureCheck(valid=False, message="Signature mismatch")
