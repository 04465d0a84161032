import hashlib
import logging
from typing import Any

# Create the library logger
logger = logging.getLogger("scrollfeed")

# Add NullHandler to prevent "No handlers could be found" warnings
# if the application doesn't configure logging.
logger.addHandler(logging.NullHandler())


def redact_value(value: dict[str, Any] | str | Any) -> str:
    """
    Redacts free text and personal data (search terms, emails, record keys) for logging.
    Hashes the values to allow correlation without revealing them.
    """
    try:
        if isinstance(value, dict):
            redacted = {}
            for k, v in value.items():
                val_str = str(v).encode("utf-8")
                redacted[k] = hashlib.sha256(val_str).hexdigest()[:8]
            return str(redacted)
        else:
            return hashlib.sha256(str(value).encode("utf-8")).hexdigest()[:8]
    except Exception:
        return "<redaction_failed>"
