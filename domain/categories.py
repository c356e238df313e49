"""Courses (gangen), publishers (uitgevers) and category grouping."""

import re
from typing import Any, Iterable


GANGEN = (
    "Amuse",
    "Voorgerecht",
    "Soep",
    "Hoofdgerecht",
    "Dessert",
    "Bijgerecht",
)

GANG_ALIASES = {
    "voorgerechten": "Voorgerecht",
    "soepen": "Soep",
    "hoofdgerechten": "Hoofdgerecht",
    "desserts": "Dessert",
    "nagerecht": "Dessert",
    "nagerechten": "Dessert",
    "bijgerechten": "Bijgerecht",
    "side dish": "Bijgerecht",
    "side": "Bijgerecht",
}

GANG_TYPE = "gang"
PUBLISHER_TYPE = "uitgever"

TYPE_COLORS = {
    "gang": "#6b7280",
    "uitgever": "#3b82f6",
    "status": "#10b981",
    "soort-gerecht": "#8b5cf6",
}
DEFAULT_COLOR = "#6b7280"

PUBLISHERS = {
    "chloekookt": "Chloé Kookt",
    "chloe kookt": "Chloé Kookt",
    "chloe": "Chloé Kookt",
    "chloé": "Chloé Kookt",
    "laurasbakery": "Laura's Bakery",
    "laura bakery": "Laura's Bakery",
    "lauras bakery": "Laura's Bakery",
    "laura": "Laura's Bakery",
    "dagelijksekost": "Dagelijkse Kost",
    "dagelijkse kost": "Dagelijkse Kost",
    "dako": "Dagelijkse Kost",
    "jeroenmeus": "Jeroen Meus",
    "jeroen meus": "Jeroen Meus",
    "jeroen": "Jeroen Meus",
    "karolaskitchen": "Karola's Kitchen",
    "karolas kitchen": "Karola's Kitchen",
    "karola": "Karola's Kitchen",
    "onskookboek": "Ons Kookboek",
    "ons kookboek": "Ons Kookboek",
    "knorr": "Knorr",
    "solo": "Solo",
    "tartesyaya": "TartesYaYa",
    "tartes yaya": "TartesYaYa",
    "tartes ya ya": "TartesYaYa",
    "leukerecepten": "Leuke Recepten",
    "leuke recepten": "Leuke Recepten",
    "leukerecepten.nl": "Leuke Recepten",
    "foto opgeladen": "Foto Upload",
    "fotoupload": "Foto Upload",
    "handmatig ingevoerd": "Handmatig",
    "pdf opgeladen": "PDF Import",
    "pdfimport": "PDF Import",
    "eigen recept": "Eigen recept",
}

LOWERCASE_NAME_PARTS = {"van", "de", "der", "den", "het", "ter", "te", "ten"}

FUZZY_RE = re.compile(r"[\s\-_]")


def canonical_gang(raw: str | None) -> str | None:
    if not raw:
        return None
    key = raw.strip().lower()
    for gang in GANGEN:
        if gang.lower() == key:
            return gang
    return GANG_ALIASES.get(key)


def type_color(type_slug: str) -> str:
    return TYPE_COLORS.get(type_slug, DEFAULT_COLOR)


def title_case(text: str) -> str:
    """Title case that keeps Dutch name particles lowercase: "Jaimy van Dijke"."""
    words = []
    for i, word in enumerate(text.split(" ")):
        if i > 0 and word.lower() in LOWERCASE_NAME_PARTS:
            words.append(word.lower())
        else:
            words.append(word[:1].upper() + word[1:].lower())
    return " ".join(words)


def normalize_publisher(raw: str | None) -> str | None:
    if not raw or not raw.strip():
        return None

    cleaned = re.sub(r"\s+", " ", raw.strip().lower().replace("'", "").replace("’", ""))
    if cleaned in PUBLISHERS:
        return PUBLISHERS[cleaned]

    fuzzy = FUZZY_RE.sub("", cleaned)
    for key, publisher in PUBLISHERS.items():
        if FUZZY_RE.sub("", key) == fuzzy:
            return publisher

    return title_case(raw.strip())


def group_categories_by_type(
    categories: Iterable[dict[str, Any]],
    types: Iterable[dict[str, Any]],
) -> dict[str, dict[str, Any]]:
    """`{type_slug: {"type": ..., "categories": [...]}}` in type order.

    Categories pointing at no (known) type are left out.
    """
    types_by_id = {t["id"]: t for t in types}
    grouped: dict[str, dict[str, Any]] = {}
    for category in categories:
        category_type = types_by_id.get(category.get("type_id"))
        if category_type is None:
            continue
        group = grouped.setdefault(
            category_type["slug"], {"type": category_type, "categories": []}
        )
        group["categories"].append(category)

    ordered = sorted(grouped.items(), key=lambda kv: kv[1]["type"].get("order_index") or 0)
    return dict(ordered)
