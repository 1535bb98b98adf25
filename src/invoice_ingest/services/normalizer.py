"""
Canonical comparison keys for free-text organization names.

OCR output for the same vendor varies in punctuation, spacing and case
("Georgia Waste Systems LLC", "GEORGIA WASTE SYSTEMS, LLC."). Stored records
index the normalized form so exact-match lookups and grouping line up.
"""

import re
import unicodedata
from typing import Any

_ZERO_WIDTH = re.compile(r"[\u200b-\u200d\u2060\ufeff]")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-zA-Z0-9& -]")
_WORD_START = re.compile(r"\b[a-z0-9]")

# Known spellings the generic pass cannot merge. Keys are generic-normalized
# variants; values must themselves be fixed points of the generic pass.
VENDOR_OVERRIDES: dict[str, str] = {
    "Trash Taxi Of Gallc": "Trash Taxi Of Ga Llc",
    "Trash Taxi Of Ga L L C": "Trash Taxi Of Ga Llc",
    "Valley Pallet & Crating Llc": "Valley Pallet And Crating Llc",
}


def _generic(name: str) -> str:
    text = unicodedata.normalize("NFKC", name)
    text = _ZERO_WIDTH.sub("", text)
    text = text.replace(".", "")
    text = _WHITESPACE.sub(" ", text)
    text = _DISALLOWED.sub("", text)
    # dropping characters can leave double spaces behind
    text = _WHITESPACE.sub(" ", text)
    text = text.strip().lower()
    return _WORD_START.sub(lambda m: m.group(0).upper(), text)


def normalize(raw: Any) -> str:
    """
    Return the canonical form of an organization name.

    Never raises: None, blank or non-string input yields "". The result is
    idempotent, ``normalize(normalize(s)) == normalize(s)``.
    """
    if not isinstance(raw, str) or not raw.strip():
        return ""

    normalized = _generic(raw)
    return VENDOR_OVERRIDES.get(normalized, normalized)


def normalize_invoice_number(raw: Any) -> str:
    """Comparison key for document numbers: trimmed and case-folded."""
    if raw is None:
        return ""
    return str(raw).strip().lower()
