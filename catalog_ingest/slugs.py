"""
Catalog Ingest - Slug Helpers
"""
from __future__ import annotations
import re
from typing import Container

MAX_SLUG_LENGTH = 100
MAX_SLUG_COUNTER = 999

_DROP_RE = re.compile(r"[^a-z0-9\s-]")
_SEP_RE = re.compile(r"[\s-]+")
_VALID_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_CATEGORY_RE = re.compile(r"[^a-z0-9]+")


def generate_slug(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """'Red Shirt (XL)!' -> 'red-shirt-xl'"""
    slug = _DROP_RE.sub("", text.lower().strip())
    slug = _SEP_RE.sub("-", slug).strip("-")
    return slug[:max_length].rstrip("-")


def is_valid_slug(slug: str) -> bool:
    return 0 < len(slug) <= MAX_SLUG_LENGTH and bool(_VALID_RE.match(slug))


def unique_slug(base: str, taken: Container[str]) -> str:
    """Return base, or base-1 .. base-999 when base is already taken."""
    if base not in taken:
        return base
    # room for "-999"
    trimmed = base[:MAX_SLUG_LENGTH - 4].rstrip("-")
    for counter in range(1, MAX_SLUG_COUNTER + 1):
        candidate = f"{trimmed}-{counter}"
        if candidate not in taken:
            return candidate
    raise ValueError(f"No free slug for '{base}' after {MAX_SLUG_COUNTER} attempts")


def category_slug(name: str) -> str:
    """'Wall Art & Decor' -> 'wall-art-decor'"""
    return _CATEGORY_RE.sub("-", name.lower()).strip("-")
