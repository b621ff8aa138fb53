"""Personal data scrubbing for free-text visit fields.

``menu`` and ``staff`` are typed in by salon staff and occasionally pick up
contact details ("call back 090-1234-5678").  Anything that looks like an
e-mail address or phone number is masked before the value is handed to
the generation backend.  Customer identity fields (name, phone, e-mail,
birthdate) never enter the report input in the first place.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

REDACTED = "[redacted]"

_PII_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("email address", re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}", re.IGNORECASE)),
    ("phone number", re.compile(r"(?:\+?\d{1,3}[\s\-]?)?\(?\d{2,4}\)?[\s\-]?\d{3,4}[\s\-]?\d{3,4}")),
]


def find_pii(text: str) -> list[str]:
    """Return the labels of PII patterns found in *text*."""
    return [label for label, pattern in _PII_PATTERNS if pattern.search(text)]


def scrub_free_text(value: str | None) -> str | None:
    """Mask e-mail addresses and phone numbers in *value*."""
    if value is None:
        return None
    scrubbed = value
    for label, pattern in _PII_PATTERNS:
        scrubbed, count = pattern.subn(REDACTED, scrubbed)
        if count:
            logger.info("Masked %d %s value(s) in free-text field", count, label)
    return scrubbed
