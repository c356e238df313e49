import re
from typing import Any


INGREDIENT_RE = re.compile(r"^(\d+(?:[.,]\d+)?)\s*([a-zA-Z]+)?\s+(.+)$")


def format_amount(amount: float) -> str:
    return str(int(amount)) if amount == int(amount) else str(amount)


def amount_display(amount: float | None, unit: str | None) -> str:
    if amount is not None and unit:
        return f"{format_amount(amount)} {unit}"
    if amount is not None:
        return format_amount(amount)
    return unit or ""


def parse_ingredient_line(line: str) -> dict[str, Any]:
    """Split "250g bloem" into amount, unit and name.

    Lines without a leading number ("zout naar smaak") keep the whole text as
    the name and are not scalable.
    """
    line = line.strip()
    amount: float | None = None
    unit: str | None = None
    name = line

    match = INGREDIENT_RE.match(line)
    if match:
        amount = float(match[1].replace(",", "."))
        unit = match[2] or None
        name = match[3]

    return {
        "ingredient_name_nl": name.strip(),
        "amount": amount,
        "unit": unit,
        "amount_display": amount_display(amount, unit),
        "scalable": amount is not None,
        "section": None,
    }


def to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return None


def ingredient_from_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Structured ingredient as sent by clients or extracted by the model."""
    amount = to_float(payload.get("amount"))
    unit = payload.get("unit") or None
    display = payload.get("amount_display")
    if not display:
        display = amount_display(amount, unit)
    scalable = payload.get("scalable")
    return {
        "ingredient_name_nl": str(payload.get("ingredient_name_nl") or payload.get("name") or "").strip(),
        "amount": amount,
        "unit": unit,
        "amount_display": display,
        "scalable": scalable if scalable is not None else amount is not None,
        "section": payload.get("section") or None,
    }
