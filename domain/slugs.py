import re
from typing import Container
import unicodedata


NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase ascii slug, e.g. "Crème Brûlée" becomes "creme-brulee"."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    ascii_text = "".join(c for c in decomposed if not unicodedata.combining(c))
    return NON_SLUG_RE.sub("-", ascii_text).strip("-")


def unique_slug(base: str, taken: Container[str]) -> str:
    slug = base
    counter = 1
    while slug in taken:
        slug = f"{base}-{counter}"
        counter += 1
    return slug
