"""
utils.py  —  Shared utility functions used across the service and translators.
"""

import os
import uuid
import logging
from datetime import datetime, timezone

# ── Logger ────────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s  %(levelname)s  %(name)s — %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("terminology")

DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "en")


# ── ID / timestamp ────────────────────────────────────────────────────────────
def generate_id() -> str:
    return str(uuid.uuid4())

def current_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ── Safe parsers ──────────────────────────────────────────────────────────────
def clean_str(value):
    """Trim a value to a non-empty string, or None when nothing is left."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None

def safe_float(value, default=None):
    try:
        return float(str(value).replace(",", "").strip())
    except (ValueError, TypeError):
        return default

def safe_int(value, default=None):
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return default

def strip_reference(reference, prefixes) -> str:
    """
    Return the local id part of a FHIR reference such as 'ValueSet/abc' or
    'urn:uuid:abc'. Only the given prefixes are accepted; anything else
    yields None.
    """
    ref = clean_str(reference)
    if not ref:
        return None
    for prefix in prefixes:
        if ref.startswith(prefix):
            return clean_str(ref[len(prefix):])
    return None

def normalize_locale(header: str) -> str:
    """'en-GB,en;q=0.8' → 'en_GB'. Falls back to DEFAULT_LOCALE."""
    if not header:
        return DEFAULT_LOCALE
    first = header.split(",")[0].split(";")[0].strip()
    if not first or first == "*":
        return DEFAULT_LOCALE
    return first.replace("-", "_")

def env_flag(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
