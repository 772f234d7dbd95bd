"""Canonical forms of ingredient names and product titles for comparison."""

import re

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9 ]")


def normalize_text(value: str) -> str:
    """Lowercase, keep only ``[a-z0-9 ]``, collapse whitespace and trim."""
    spaced = _WHITESPACE.sub(" ", value.lower())
    cleaned = _DISALLOWED.sub("", spaced)
    return _WHITESPACE.sub(" ", cleaned).strip()


def normalize_ingredient_name(value: str) -> str:
    """Normalize an ingredient or inventory name and drop one trailing ``s``.

    Only the final character of the string is considered, so
    ``"red bell peppers"`` becomes ``"red bell pepper"`` and ``"peas soup"``
    is left alone. The rule is naive: ``"glass"`` becomes ``"glas"``.
    """
    normalized = normalize_text(value)
    if normalized.endswith("s"):
        return normalized[:-1]
    return normalized


def normalize_product_title(value: str) -> str:
    """Normalize a book or product title. Plurals are kept."""
    return normalize_text(value)
