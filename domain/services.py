import logging
from typing import Any, Iterable, Mapping

import httpx

from domain.categories import (
    GANG_TYPE,
    PUBLISHER_TYPE,
    canonical_gang,
    normalize_publisher,
)
from domain.category_filter import filter_recipes_by_all_categories
from domain.ingredients import ingredient_from_payload, parse_ingredient_line
from domain.llm_service import FALLBACK_CATEGORY, LLMService
from domain.models import DIFFICULTIES, EDITABLE_RECIPE_FIELDS, Recipe
from domain.repository import (
    AlreadyExists,
    CategoryRepository,
    GroceryRepository,
    NotFound,
    RecipeRepository,
    WeekMenuRepository,
    now,
)
from domain.servings import InvalidArgument, scale_quantity
from domain.slugs import slugify, unique_slug
from domain.weeks import parse_week_date, valid_day_of_week
from domain.webpage import text_from_webpage


logger = logging.getLogger(__name__)


DEFAULT_SERVINGS = 4
MANUAL_SOURCE = "Handmatig toegevoegd"
MANUAL_PUBLISHER = "Eigen recept"
NO_INSTRUCTIONS = "Geen bereidingswijze beschikbaar."

UNCATEGORISED = {
    "id": None,
    "name": "Ongecategoriseerd",
    "slug": "uncategorized",
    "icon": "❓",
    "color": "#9CA3AF",
    "order_index": 999,
    "is_system": False,
    "is_visible": True,
}

WEEKMENU_FIELDS = ("day_of_week", "servings", "is_completed", "order_index")


def optional_int(value: Any) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"{name} must be a positive integer")
    return value


def boolean(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidArgument(f"{name} must be true or false")
    return value


def integer(value: Any, name: str, *, nullable: bool = True) -> int | None:
    if value is None and nullable:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{name} must be an integer")
    return value


def string(value: Any, name: str, *, nullable: bool = True) -> str | None:
    if value is None and nullable:
        return None
    if not isinstance(value, str):
        raise InvalidArgument(f"{name} must be a string")
    return value


def recipe_fields(data: Mapping[str, Any]) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """Recipe columns and ingredient rows from a recipe as typed in or extracted."""
    title = str(data.get("title") or "").strip()
    if not title:
        raise InvalidArgument("Titel is verplicht")

    servings = optional_int(data.get("servings", data.get("servings_default")))
    difficulty = data.get("difficulty")
    fields = {
        "title": title,
        "description": data.get("description") or None,
        "content_markdown": data.get("instructions") or data.get("content_markdown") or "",
        "prep_time": optional_int(data.get("prep_time")),
        "cook_time": optional_int(data.get("cook_time")),
        "servings_default": servings if servings and servings > 0 else DEFAULT_SERVINGS,
        "difficulty": difficulty if difficulty in DIFFICULTIES else None,
        "source_language": "nl",
    }

    ingredients = []
    for raw in data.get("ingredients") or []:
        if isinstance(raw, str):
            ingredient = parse_ingredient_line(raw)
        elif isinstance(raw, dict):
            ingredient = ingredient_from_payload(raw)
        else:
            continue
        if ingredient["ingredient_name_nl"]:
            ingredients.append(ingredient)
    return fields, ingredients


async def save_recipe(
    fields: Mapping[str, Any],
    ingredients: Iterable[Mapping[str, Any]],
    *,
    recipes: RecipeRepository,
) -> Recipe:
    base = slugify(fields["title"]) or "recept"
    slug = unique_slug(base, await recipes.taken_slugs(base))
    recipe = await recipes.create({**fields, "slug": slug}, ingredients)
    logger.info("Saved recipe %s", recipe)
    return recipe


async def link_recipe_to_categories(
    recipe_id: str,
    *,
    gang: str | None,
    publisher: str | None,
    categories: CategoryRepository,
) -> list[str]:
    """Attach the course and publisher categories, creating them when missing."""
    wanted: list[str] = []

    name = canonical_gang(gang)
    if gang and name is None:
        logger.warning("Unknown gang %r for recipe %s", gang, recipe_id)
    if name is not None:
        id = await categories.get_or_create(name, GANG_TYPE, is_system=True)
        if id is not None:
            wanted.append(id)

    name = normalize_publisher(publisher)
    if name is not None:
        id = await categories.get_or_create(name, PUBLISHER_TYPE)
        if id is not None:
            wanted.append(id)

    linked = await categories.categories_for_recipes([recipe_id])
    existing = {c["id"] for c in linked[recipe_id]}
    for id in wanted:
        if id not in existing:
            await categories.link(recipe_id, id)
            existing.add(id)
    return wanted


async def create_manual_recipe(
    payload: Mapping[str, Any],
    *,
    recipes: RecipeRepository,
    categories: CategoryRepository,
) -> Recipe:
    fields, ingredients = recipe_fields(payload)
    fields["source_name"] = MANUAL_SOURCE
    recipe = await save_recipe(fields, ingredients, recipes=recipes)
    await link_recipe_to_categories(
        recipe.id,
        gang=payload.get("gang"),
        publisher=MANUAL_PUBLISHER,
        categories=categories,
    )
    return recipe


async def import_recipe_from_url(
    url: str,
    *,
    recipes: RecipeRepository,
    categories: CategoryRepository,
    llm: LLMService,
    http_client: httpx.AsyncClient,
) -> Recipe:
    text, source = await text_from_webpage(url, http_client=http_client)
    data = await llm.recipe_from_webpage(text, url)
    fields, ingredients = recipe_fields(data)
    fields["content_markdown"] = fields["content_markdown"] or NO_INSTRUCTIONS
    fields["source_name"] = source
    fields["source_url"] = url
    recipe = await save_recipe(fields, ingredients, recipes=recipes)
    await link_recipe_to_categories(
        recipe.id,
        gang=data.get("gang"),
        publisher=source,
        categories=categories,
    )
    logger.info("Imported %s from %s", recipe, url)
    return recipe


def empty_page(page: int, page_size: int) -> dict[str, Any]:
    return {"recipes": [], "totalCount": 0, "page": page, "pageSize": page_size, "hasMore": False}


async def list_recipes(
    *,
    recipes: RecipeRepository,
    categories: CategoryRepository,
    search: str = "",
    favorites: bool = False,
    category_ids: Iterable[str] = (),
    weekmenu_ids: Iterable[str] | None = None,
    page: int = 0,
    page_size: int = 24,
) -> dict[str, Any]:
    """One page of recipes, newest first.

    `weekmenu_ids` of `None` means no week menu filter; an empty collection
    matches nothing. Category filtering keeps recipes linked to all of
    `category_ids`.
    """
    ids: set[str] | None = None
    if weekmenu_ids is not None:
        ids = set(weekmenu_ids)
        if not ids:
            return empty_page(page, page_size)

    requested = set(category_ids)
    if requested:
        associations = await categories.associations(requested)
        matched = filter_recipes_by_all_categories(associations, requested)
        ids = matched if ids is None else ids & matched
        if not ids:
            return empty_page(page, page_size)

    found, total = await recipes.list_page(
        search=search,
        favorites=favorites,
        ids=ids,
        offset=page * page_size,
        limit=page_size,
    )
    linked = await categories.categories_for_recipes(r.id for r in found)
    return {
        "recipes": [
            {**r.to_dict(), "categories": linked[r.id]} for r in found
        ],
        "totalCount": total,
        "page": page,
        "pageSize": page_size,
        "hasMore": (page + 1) * page_size < total,
    }


async def recipe_detail(
    slug: str,
    *,
    recipes: RecipeRepository,
    categories: CategoryRepository,
    servings: int | None = None,
) -> dict[str, Any]:
    recipe = await recipes.get_by_slug(slug)
    recipe_id = recipe.id
    ingredients = await recipes.ingredients(recipe_id)

    default = recipe.servings_default
    if servings is not None:
        positive_int(servings, "servings")
        for ingredient in ingredients:
            if ingredient["scalable"] and ingredient["amount_display"]:
                ingredient["amount_display"] = scale_quantity(
                    ingredient["amount_display"], default, servings
                )

    linked = await categories.categories_for_recipes([recipe_id])
    return {
        **recipe.to_dict(),
        "html": recipe.html,
        "servings": default if servings is None else servings,
        "ingredients": ingredients,
        "categories": linked[recipe_id],
    }


async def update_recipe(
    slug: str,
    payload: Mapping[str, Any],
    *,
    recipes: RecipeRepository,
) -> Recipe:
    recipe = await recipes.get_by_slug(slug)
    recipe_id = recipe.id

    fields = {k: payload[k] for k in EDITABLE_RECIPE_FIELDS if k in payload}
    if "title" in fields and not str(fields["title"] or "").strip():
        raise InvalidArgument("Titel is verplicht")
    if "servings_default" in fields:
        positive_int(fields["servings_default"], "servings_default")
    if "content_markdown" in fields:
        string(fields["content_markdown"], "content_markdown", nullable=False)
    if "is_favorite" in fields:
        boolean(fields["is_favorite"], "is_favorite")
    for name in ("prep_time", "cook_time"):
        if name in fields:
            integer(fields[name], name)
    for name in ("description", "image_url", "source_name", "source_url", "notes"):
        if name in fields:
            string(fields[name], name)
    if fields.get("difficulty") not in (None, *DIFFICULTIES):
        raise InvalidArgument(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
    if "notes" in fields:
        fields["notes_updated_at"] = now()

    if payload.get("slug") is not None:
        new_slug = slugify(str(payload["slug"]))
        if not new_slug:
            raise InvalidArgument("Invalid slug")
        if new_slug != slug:
            if new_slug in await recipes.taken_slugs(new_slug):
                raise AlreadyExists("Slug already in use")
            fields["slug"] = new_slug

    ingredients = payload.get("ingredients")
    if isinstance(ingredients, list):
        await recipes.replace_ingredients(
            recipe_id,
            [ingredient_from_payload(i) for i in ingredients if isinstance(i, dict)],
        )
    return await recipes.update(recipe_id, fields)


async def plan_recipe(
    payload: Mapping[str, Any],
    *,
    weekmenu: WeekMenuRepository,
) -> dict[str, Any]:
    recipe_id = payload.get("recipe_id")
    if not recipe_id:
        raise InvalidArgument("recipe_id and week_date are required")
    week_date = payload.get("week_date")
    parse_week_date(week_date)

    day = payload.get("day_of_week")
    if day is not None and not valid_day_of_week(day):
        raise InvalidArgument("day_of_week must be between 0 (Monday) and 6 (Sunday)")
    servings = payload.get("servings")
    if servings is not None:
        positive_int(servings, "servings")

    return await weekmenu.create(
        recipe_id=recipe_id,
        week_date=week_date,
        day_of_week=day,
        servings=servings,
        order_index=optional_int(payload.get("order_index")),
    )


async def update_planned_recipe(
    id: str,
    payload: Mapping[str, Any],
    *,
    weekmenu: WeekMenuRepository,
) -> dict[str, Any]:
    fields = {k: payload[k] for k in WEEKMENU_FIELDS if k in payload}
    if not fields:
        raise InvalidArgument("No fields to update")
    day = fields.get("day_of_week")
    if day is not None and not valid_day_of_week(day):
        raise InvalidArgument("day_of_week must be between 0 (Monday) and 6 (Sunday)")
    if fields.get("servings") is not None:
        positive_int(fields["servings"], "servings")
    if "is_completed" in fields:
        boolean(fields["is_completed"], "is_completed")
    if "order_index" in fields:
        integer(fields["order_index"], "order_index", nullable=False)
    return await weekmenu.update(id, fields)


async def copy_week(
    from_week: str,
    to_week: str,
    *,
    weekmenu: WeekMenuRepository,
) -> list[dict[str, Any]]:
    """Replace the menu of `to_week` with the items planned in `from_week`."""
    if parse_week_date(from_week) == parse_week_date(to_week):
        raise InvalidArgument("Source and target week must be different")
    source = await weekmenu.list_week(from_week)
    if not source:
        raise NotFound("No items found in source week")

    await weekmenu.clear(to_week)
    for item in source:
        await weekmenu.create(
            recipe_id=item["recipe_id"],
            week_date=to_week,
            day_of_week=item["day_of_week"],
            servings=item["servings"],
            order_index=item["order_index"],
        )
    logger.info("Copied %d menu items from %s to %s", len(source), from_week, to_week)
    return await weekmenu.list_week(to_week)


async def categorize_items(
    items: Iterable[Mapping[str, Any]],
    *,
    groceries: GroceryRepository,
    llm: LLMService,
) -> list[dict[str, Any]]:
    """Fill in `category_id` for items that have none."""
    categories = await groceries.categories()
    by_slug = {c["slug"]: c["id"] for c in categories}
    fallback = by_slug.get(FALLBACK_CATEGORY) or (categories[0]["id"] if categories else None)

    result = []
    for item in items:
        item = dict(item)
        if not item.get("category_id"):
            slug = await llm.categorize_ingredient(item["name"], by_slug)
            item["category_id"] = by_slug.get(slug, fallback)
        result.append(item)
    return result


async def add_grocery_items(
    items: Iterable[Mapping[str, Any]],
    *,
    groceries: GroceryRepository,
    llm: LLMService,
) -> list[dict[str, Any]]:
    items = list(items)
    if not items:
        raise InvalidArgument("Items array cannot be empty")
    for item in items:
        if not str(item.get("name") or "").strip():
            raise InvalidArgument("Name is required")
    categorized = await categorize_items(items, groceries=groceries, llm=llm)
    return await groceries.create_items(categorized)


async def grouped_groceries(*, groceries: GroceryRepository) -> dict[str, Any]:
    """All grocery items per visible category, uncategorised items last."""
    categories = await groceries.categories()
    items = await groceries.items()

    visible = {c["id"] for c in categories}
    grouped = [
        {"category": c, "items": [i for i in items if i["category_id"] == c["id"]]}
        for c in categories
    ]
    uncategorised = [i for i in items if i["category_id"] not in visible]
    if uncategorised:
        grouped.append({"category": {**UNCATEGORISED, "created_at": now()}, "items": uncategorised})

    checked = sum(1 for i in items if i["is_checked"])
    return {
        "grouped": grouped,
        "total": len(items),
        "checked": checked,
        "unchecked": len(items) - checked,
    }


async def sync_groceries_from_week(
    week_date: str,
    *,
    clear_existing: bool = False,
    weekmenu: WeekMenuRepository,
    recipes: RecipeRepository,
    groceries: GroceryRepository,
) -> dict[str, Any]:
    """Put the ingredients of the open menu items of a week on the grocery list.

    Amounts are rescaled from the recipe's default servings to the servings
    planned in the menu.
    """
    parse_week_date(week_date)
    menu = await weekmenu.open_items(week_date)
    if not menu:
        raise NotFound("No menu items found for this week")

    if clear_existing:
        await groceries.clear_synced()

    items = []
    for menu_item in menu:
        recipe = await recipes.get(menu_item["recipe_id"])
        default = recipe.servings_default
        planned = menu_item["servings"] or default
        for ingredient in await recipes.ingredients(recipe.id):
            amount = ingredient["amount_display"] or None
            scaled = amount
            if amount and ingredient["scalable"] and planned != default:
                scaled = scale_quantity(amount, default, planned)
            items.append(
                {
                    "name": ingredient["ingredient_name_nl"],
                    "amount": scaled,
                    "original_amount": amount,
                    "from_recipe_id": menu_item["recipe_id"],
                    "from_weekmenu_id": menu_item["id"],
                }
            )

    if not items:
        raise NotFound("No ingredients found in menu recipes")

    created = await groceries.create_items(items)
    logger.info("Synced %d grocery items from %d recipes", len(created), len(menu))
    return {
        "message": f"Synced {len(created)} items from {len(menu)} recipes",
        "items": created,
    }
