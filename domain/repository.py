import datetime as dt
import logging
from typing import Any, Iterable, Mapping
import uuid

from databases import Database
import sqlalchemy as sa
from sqlalchemy.schema import CreateTable

from domain.categories import type_color
from domain.models import Recipe
from domain.slugs import slugify


logger = logging.getLogger(__name__)


metadata = sa.MetaData()


recipes = sa.Table(
    "recipes",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("title", sa.String(256), nullable=False),
    sa.Column("slug", sa.String(256), nullable=False, unique=True),
    sa.Column("description", sa.Text),
    sa.Column("content_markdown", sa.Text, nullable=False),
    sa.Column("prep_time", sa.Integer),
    sa.Column("cook_time", sa.Integer),
    sa.Column("servings_default", sa.Integer, nullable=False),
    sa.Column("difficulty", sa.String(16)),
    sa.Column("image_url", sa.String(1024)),
    sa.Column("source_name", sa.String(256)),
    sa.Column("source_url", sa.String(1024)),
    sa.Column("source_language", sa.String(8)),
    sa.Column("notes", sa.Text),
    sa.Column("notes_updated_at", sa.String(40)),
    sa.Column("is_favorite", sa.Boolean, nullable=False),
    sa.Column("created_at", sa.String(40), nullable=False),
    sa.Column("updated_at", sa.String(40), nullable=False),
)


parsed_ingredients = sa.Table(
    "parsed_ingredients",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("recipe_id", sa.String(32), sa.ForeignKey("recipes.id", ondelete="CASCADE")),
    sa.Column("ingredient_name_nl", sa.String(256), nullable=False),
    sa.Column("amount", sa.Float),
    sa.Column("unit", sa.String(64)),
    sa.Column("amount_display", sa.String(128)),
    sa.Column("scalable", sa.Boolean),
    sa.Column("section", sa.String(256)),
    sa.Column("order_index", sa.Integer, nullable=False),
)


category_types = sa.Table(
    "category_types",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("name", sa.String(128), nullable=False),
    sa.Column("slug", sa.String(128), nullable=False, unique=True),
    sa.Column("description", sa.Text),
    sa.Column("allow_multiple", sa.Boolean),
    sa.Column("order_index", sa.Integer),
    sa.Column("created_at", sa.String(40)),
)


categories = sa.Table(
    "categories",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("name", sa.String(128), nullable=False),
    sa.Column("slug", sa.String(128), nullable=False),
    sa.Column("color", sa.String(32), nullable=False),
    sa.Column("type_id", sa.String(32), sa.ForeignKey("category_types.id")),
    sa.Column("order_index", sa.Integer),
    sa.Column("is_system", sa.Boolean, nullable=False),
    sa.Column("created_at", sa.String(40)),
    sa.UniqueConstraint("slug", "type_id"),
)


recipe_categories = sa.Table(
    "recipe_categories",
    metadata,
    sa.Column("recipe_id", sa.String(32), sa.ForeignKey("recipes.id"), primary_key=True),
    sa.Column("category_id", sa.String(32), sa.ForeignKey("categories.id"), primary_key=True),
)


weekly_menu_items = sa.Table(
    "weekly_menu_items",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("recipe_id", sa.String(32), sa.ForeignKey("recipes.id"), nullable=False),
    sa.Column("week_date", sa.String(10), nullable=False),
    sa.Column("day_of_week", sa.Integer),
    sa.Column("servings", sa.Integer),
    sa.Column("is_completed", sa.Boolean, nullable=False),
    sa.Column("order_index", sa.Integer, nullable=False),
    sa.Column("created_at", sa.String(40), nullable=False),
    sa.UniqueConstraint("recipe_id", "week_date", "day_of_week"),
)


grocery_categories = sa.Table(
    "grocery_categories",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("name", sa.String(128), nullable=False),
    sa.Column("slug", sa.String(128), nullable=False, unique=True),
    sa.Column("icon", sa.String(16)),
    sa.Column("color", sa.String(32)),
    sa.Column("order_index", sa.Integer),
    sa.Column("is_system", sa.Boolean, nullable=False),
    sa.Column("is_visible", sa.Boolean, nullable=False),
    sa.Column("created_at", sa.String(40)),
)


grocery_items = sa.Table(
    "grocery_items",
    metadata,
    sa.Column("id", sa.String(32), primary_key=True),
    sa.Column("name", sa.String(256), nullable=False),
    sa.Column("amount", sa.String(128)),
    sa.Column("original_amount", sa.String(128)),
    sa.Column("category_id", sa.String(32), sa.ForeignKey("grocery_categories.id")),
    sa.Column("is_checked", sa.Boolean, nullable=False),
    sa.Column("from_recipe_id", sa.String(32), sa.ForeignKey("recipes.id")),
    sa.Column("from_weekmenu_id", sa.String(32), sa.ForeignKey("weekly_menu_items.id")),
    sa.Column("created_at", sa.String(40), nullable=False),
    sa.Column("updated_at", sa.String(40), nullable=False),
)


SEED_CATEGORY_TYPES = (
    # slug, name, description, allow_multiple
    ("gang", "Gang", "Soort gang binnen een menu", False),
    ("uitgever", "Uitgever", "Bron of auteur van het recept", False),
)


SEED_GROCERY_CATEGORIES = (
    # slug, name, icon, color
    ("groenten-fruit", "Groenten & Fruit", "🥕", "#22C55E"),
    ("zuivel-eieren", "Zuivel & Eieren", "🥛", "#FACC15"),
    ("brood-bakkerij", "Brood & Bakkerij", "🍞", "#F59E0B"),
    ("vlees-vis", "Vlees & Vis", "🥩", "#EF4444"),
    ("pasta-rijst", "Pasta, Rijst & Granen", "🍝", "#FB923C"),
    ("conserven", "Conserven & Potten", "🥫", "#A855F7"),
    ("kruiden", "Kruiden & Specerijen", "🌿", "#10B981"),
    ("dranken", "Dranken", "🥤", "#3B82F6"),
    ("diepvries", "Diepvries", "🧊", "#06B6D4"),
    ("schoonmaak", "Schoonmaak & Non-food", "🧽", "#64748B"),
    ("overige", "Overige", "📦", "#9CA3AF"),
)


class NotFound(Exception):
    pass


class AlreadyExists(Exception):
    pass


class Forbidden(Exception):
    pass


def new_id() -> str:
    return uuid.uuid4().hex


def now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def row_to_dict(row: Any, table: sa.Table) -> dict[str, Any]:
    return {c.name: row[c.name] for c in table.columns}


async def create_tables(db: Database) -> None:
    for table in metadata.sorted_tables:
        await db.execute(CreateTable(table, if_not_exists=True))  # pyright: ignore[reportUnknownMemberType]
    await seed(db)


async def seed(db: Database) -> None:
    count = await db.fetch_val(sa.select(sa.func.count()).select_from(category_types))
    if not count:
        for i, (slug, name, description, allow_multiple) in enumerate(SEED_CATEGORY_TYPES):
            await db.execute(
                category_types.insert().values(
                    id=new_id(),
                    name=name,
                    slug=slug,
                    description=description,
                    allow_multiple=allow_multiple,
                    order_index=i,
                    created_at=now(),
                )
            )
        logger.info("Seeded %d category types", len(SEED_CATEGORY_TYPES))

    count = await db.fetch_val(sa.select(sa.func.count()).select_from(grocery_categories))
    if not count:
        for i, (slug, name, icon, color) in enumerate(SEED_GROCERY_CATEGORIES):
            await db.execute(
                grocery_categories.insert().values(
                    id=new_id(),
                    name=name,
                    slug=slug,
                    icon=icon,
                    color=color,
                    order_index=i,
                    is_system=True,
                    is_visible=True,
                    created_at=now(),
                )
            )
        logger.info("Seeded %d grocery categories", len(SEED_GROCERY_CATEGORIES))


class RecipeRepository:
    """Recipes and their parsed ingredients."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def taken_slugs(self, base: str) -> set[str]:
        query = sa.select(recipes.c.slug).where(
            sa.or_(recipes.c.slug == base, recipes.c.slug.like(f"{base}-%"))
        )
        rows = await self.db.fetch_all(query)
        return {r["slug"] for r in rows}

    async def create(
        self,
        fields: Mapping[str, Any],
        ingredients: Iterable[Mapping[str, Any]] = (),
    ) -> Recipe:
        timestamp = now()
        values = {name: fields.get(name) for name in recipes.columns.keys()}
        values.update(
            id=new_id(),
            content_markdown=fields.get("content_markdown") or "",
            servings_default=fields.get("servings_default") or 4,
            is_favorite=bool(fields.get("is_favorite")),
            created_at=timestamp,
            updated_at=timestamp,
        )
        async with self.db.transaction():
            await self.db.execute(recipes.insert().values(**values))
            await self._insert_ingredients(values["id"], ingredients)
        return Recipe.from_row(values)

    async def _insert_ingredients(
        self, recipe_id: str, ingredients: Iterable[Mapping[str, Any]]
    ) -> None:
        for i, ingredient in enumerate(ingredients):
            await self.db.execute(
                parsed_ingredients.insert().values(
                    id=new_id(),
                    recipe_id=recipe_id,
                    ingredient_name_nl=ingredient["ingredient_name_nl"],
                    amount=ingredient.get("amount"),
                    unit=ingredient.get("unit"),
                    amount_display=ingredient.get("amount_display"),
                    scalable=ingredient.get("scalable"),
                    section=ingredient.get("section"),
                    order_index=i,
                )
            )

    async def get(self, id: str) -> Recipe:
        row = await self.db.fetch_one(recipes.select().where(recipes.c.id == id))
        if row is None:
            raise NotFound("Recipe not found")
        return Recipe.from_row(row_to_dict(row, recipes))

    async def get_by_slug(self, slug: str) -> Recipe:
        row = await self.db.fetch_one(recipes.select().where(recipes.c.slug == slug))
        if row is None:
            raise NotFound("Recipe not found")
        return Recipe.from_row(row_to_dict(row, recipes))

    async def exists(self, id: str) -> bool:
        query = sa.select(recipes.c.id).where(recipes.c.id == id)
        return await self.db.fetch_one(query) is not None

    async def list_page(
        self,
        *,
        search: str = "",
        favorites: bool = False,
        ids: Iterable[str] | None = None,
        offset: int = 0,
        limit: int = 24,
    ) -> tuple[list[Recipe], int]:
        conditions: list[Any] = []
        if search:
            pattern = f"%{search}%"
            conditions.append(
                sa.or_(
                    recipes.c.title.ilike(pattern),
                    recipes.c.description.ilike(pattern),
                    recipes.c.source_name.ilike(pattern),
                )
            )
        if favorites:
            conditions.append(recipes.c.is_favorite.is_(True))
        if ids is not None:
            conditions.append(recipes.c.id.in_(list(ids)))

        count_query = sa.select(sa.func.count()).select_from(recipes).where(*conditions)
        total = await self.db.fetch_val(count_query)

        query = (
            recipes.select()
            .where(*conditions)
            .order_by(recipes.c.created_at.desc(), recipes.c.id)
            .offset(offset)
            .limit(limit)
        )
        rows = await self.db.fetch_all(query)
        return [Recipe.from_row(row_to_dict(r, recipes)) for r in rows], total or 0

    async def update(self, id: str, fields: Mapping[str, Any]) -> Recipe:
        values = dict(fields)
        values["updated_at"] = now()
        await self.db.execute(recipes.update().where(recipes.c.id == id).values(**values))
        return await self.get(id)

    async def ingredients(self, recipe_id: str) -> list[dict[str, Any]]:
        query = (
            parsed_ingredients.select()
            .where(parsed_ingredients.c.recipe_id == recipe_id)
            .order_by(parsed_ingredients.c.order_index)
        )
        rows = await self.db.fetch_all(query)
        return [row_to_dict(r, parsed_ingredients) for r in rows]

    async def replace_ingredients(
        self, recipe_id: str, ingredients: Iterable[Mapping[str, Any]]
    ) -> None:
        async with self.db.transaction():
            await self.db.execute(
                parsed_ingredients.delete().where(parsed_ingredients.c.recipe_id == recipe_id)
            )
            await self._insert_ingredients(recipe_id, ingredients)

    async def delete(self, id: str) -> None:
        async with self.db.transaction():
            await self.db.execute(
                parsed_ingredients.delete().where(parsed_ingredients.c.recipe_id == id)
            )
            await self.db.execute(
                recipe_categories.delete().where(recipe_categories.c.recipe_id == id)
            )
            await self.db.execute(
                weekly_menu_items.delete().where(weekly_menu_items.c.recipe_id == id)
            )
            await self.db.execute(
                grocery_items.update()
                .where(grocery_items.c.from_recipe_id == id)
                .values(from_recipe_id=None, from_weekmenu_id=None)
            )
            await self.db.execute(recipes.delete().where(recipes.c.id == id))


class CategoryRepository:
    """Categories, their types, and the recipe <-> category links."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def list_types(self) -> list[dict[str, Any]]:
        query = category_types.select().order_by(
            category_types.c.order_index, category_types.c.name
        )
        return [row_to_dict(r, category_types) for r in await self.db.fetch_all(query)]

    async def get_type(self, id: str) -> dict[str, Any]:
        row = await self.db.fetch_one(category_types.select().where(category_types.c.id == id))
        if row is None:
            raise NotFound("Category type not found")
        return row_to_dict(row, category_types)

    async def type_by_slug(self, slug: str) -> dict[str, Any] | None:
        row = await self.db.fetch_one(
            category_types.select().where(category_types.c.slug == slug)
        )
        return None if row is None else row_to_dict(row, category_types)

    async def create_type(
        self,
        *,
        name: str,
        slug: str,
        description: str | None = None,
        allow_multiple: bool = True,
        order_index: int | None = None,
    ) -> dict[str, Any]:
        if await self.type_by_slug(slug) is not None:
            raise AlreadyExists("Category type already exists")
        values = {
            "id": new_id(),
            "name": name,
            "slug": slug,
            "description": description,
            "allow_multiple": allow_multiple,
            "order_index": order_index,
            "created_at": now(),
        }
        await self.db.execute(category_types.insert().values(**values))
        return values

    async def update_type(self, id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        await self.get_type(id)
        if fields:
            await self.db.execute(
                category_types.update().where(category_types.c.id == id).values(**fields)
            )
        return await self.get_type(id)

    async def delete_type(self, id: str) -> None:
        async with self.db.transaction():
            await self.db.execute(
                categories.update().where(categories.c.type_id == id).values(type_id=None)
            )
            await self.db.execute(category_types.delete().where(category_types.c.id == id))

    async def list_categories(self, *, order_by: str = "name") -> list[dict[str, Any]]:
        query = categories.select().order_by(categories.c[order_by], categories.c.name)
        return [row_to_dict(r, categories) for r in await self.db.fetch_all(query)]

    async def get(self, id: str) -> dict[str, Any]:
        row = await self.db.fetch_one(categories.select().where(categories.c.id == id))
        if row is None:
            raise NotFound("Category not found")
        return row_to_dict(row, categories)

    async def find(self, slug: str, type_id: str | None) -> dict[str, Any] | None:
        row = await self.db.fetch_one(
            categories.select().where(
                categories.c.slug == slug,
                categories.c.type_id == type_id if type_id else categories.c.type_id.is_(None),
            )
        )
        return None if row is None else row_to_dict(row, categories)

    async def create(
        self,
        *,
        name: str,
        color: str,
        type_id: str | None = None,
        is_system: bool = False,
    ) -> dict[str, Any]:
        slug = slugify(name)
        if await self.find(slug, type_id) is not None:
            raise AlreadyExists("Category already exists")
        if type_id is not None:
            await self.get_type(type_id)
        values = {
            "id": new_id(),
            "name": name,
            "slug": slug,
            "color": color,
            "type_id": type_id,
            "order_index": None,
            "is_system": is_system,
            "created_at": now(),
        }
        await self.db.execute(categories.insert().values(**values))
        return values

    async def update(self, id: str, *, name: str, color: str) -> dict[str, Any]:
        current = await self.get(id)
        slug = slugify(name)
        other = await self.find(slug, current["type_id"])
        if other is not None and other["id"] != id:
            raise AlreadyExists("Category name already exists")
        await self.db.execute(
            categories.update()
            .where(categories.c.id == id)
            .values(name=name, slug=slug, color=color)
        )
        return await self.get(id)

    async def delete(self, id: str) -> None:
        await self.get(id)
        async with self.db.transaction():
            await self.db.execute(
                recipe_categories.delete().where(recipe_categories.c.category_id == id)
            )
            await self.db.execute(categories.delete().where(categories.c.id == id))

    async def get_or_create(self, name: str, type_slug: str, *, is_system: bool = False) -> str | None:
        category_type = await self.type_by_slug(type_slug)
        if category_type is None:
            logger.error("Category type not found: %s", type_slug)
            return None
        existing = await self.find(slugify(name), category_type["id"])
        if existing is not None:
            return existing["id"]
        created = await self.create(
            name=name,
            color=type_color(type_slug),
            type_id=category_type["id"],
            is_system=is_system,
        )
        logger.info("Created category %s (%s)", name, type_slug)
        return created["id"]

    async def associations(self, category_ids: Iterable[str]) -> list[tuple[str, str]]:
        query = sa.select(recipe_categories.c.recipe_id, recipe_categories.c.category_id).where(
            recipe_categories.c.category_id.in_(list(category_ids))
        )
        rows = await self.db.fetch_all(query)
        return [(r["recipe_id"], r["category_id"]) for r in rows]

    async def categories_for_recipes(
        self, recipe_ids: Iterable[str]
    ) -> dict[str, list[dict[str, Any]]]:
        """Categories (with their type nested) per recipe id."""
        recipe_ids = list(recipe_ids)
        result: dict[str, list[dict[str, Any]]] = {id: [] for id in recipe_ids}
        if not recipe_ids:
            return result

        links = await self.db.fetch_all(
            recipe_categories.select().where(recipe_categories.c.recipe_id.in_(recipe_ids))
        )
        category_ids = {link["category_id"] for link in links}
        rows = await self.db.fetch_all(categories.select().where(categories.c.id.in_(list(category_ids))))
        by_id = {r["id"]: row_to_dict(r, categories) for r in rows}
        types = {t["id"]: t for t in await self.list_types()}
        for category in by_id.values():
            category["category_type"] = types.get(category["type_id"])

        for link in links:
            category = by_id.get(link["category_id"])
            if category is not None:
                result[link["recipe_id"]].append(category)
        for found in result.values():
            found.sort(key=lambda c: c["name"])
        return result

    async def link(self, recipe_id: str, category_id: str) -> dict[str, str]:
        await self.get(category_id)
        existing = await self.db.fetch_one(
            recipe_categories.select().where(
                recipe_categories.c.recipe_id == recipe_id,
                recipe_categories.c.category_id == category_id,
            )
        )
        if existing is not None:
            raise AlreadyExists("Category already added to recipe")
        values = {"recipe_id": recipe_id, "category_id": category_id}
        await self.db.execute(recipe_categories.insert().values(**values))
        return values

    async def unlink(self, recipe_id: str, category_id: str) -> None:
        await self.db.execute(
            recipe_categories.delete().where(
                recipe_categories.c.recipe_id == recipe_id,
                recipe_categories.c.category_id == category_id,
            )
        )


class WeekMenuRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def _with_recipes(self, rows: Iterable[Any]) -> list[dict[str, Any]]:
        items = [row_to_dict(r, weekly_menu_items) for r in rows]
        recipe_ids = {item["recipe_id"] for item in items}
        recipe_rows = await self.db.fetch_all(recipes.select().where(recipes.c.id.in_(list(recipe_ids))))
        summaries = {
            r["id"]: Recipe.from_row(row_to_dict(r, recipes)).summary() for r in recipe_rows
        }
        for item in items:
            item["recipe"] = summaries.get(item["recipe_id"])
        return items

    async def list_week(self, week_date: str) -> list[dict[str, Any]]:
        rows = await self.db.fetch_all(
            weekly_menu_items.select().where(weekly_menu_items.c.week_date == week_date)
        )
        items = await self._with_recipes(rows)
        items.sort(
            key=lambda i: (i["day_of_week"] is None, i["day_of_week"] or 0, i["order_index"])
        )
        return items

    async def get(self, id: str) -> dict[str, Any]:
        row = await self.db.fetch_one(
            weekly_menu_items.select().where(weekly_menu_items.c.id == id)
        )
        if row is None:
            raise NotFound("Weekly menu item not found")
        (item,) = await self._with_recipes([row])
        return item

    async def _is_planned(
        self,
        recipe_id: str,
        week_date: str,
        day_of_week: int | None,
        exclude_id: str | None = None,
    ) -> bool:
        day = weekly_menu_items.c.day_of_week
        query = weekly_menu_items.select().where(
            weekly_menu_items.c.recipe_id == recipe_id,
            weekly_menu_items.c.week_date == week_date,
            day.is_(None) if day_of_week is None else day == day_of_week,
        )
        if exclude_id is not None:
            query = query.where(weekly_menu_items.c.id != exclude_id)
        return await self.db.fetch_one(query) is not None

    async def create(
        self,
        *,
        recipe_id: str,
        week_date: str,
        day_of_week: int | None = None,
        servings: int | None = None,
        order_index: int | None = None,
        is_completed: bool = False,
    ) -> dict[str, Any]:
        if not await RecipeRepository(self.db).exists(recipe_id):
            raise NotFound("Recipe not found")
        if await self._is_planned(recipe_id, week_date, day_of_week):
            raise AlreadyExists("This recipe is already in the menu for this day")
        values = {
            "id": new_id(),
            "recipe_id": recipe_id,
            "week_date": week_date,
            "day_of_week": day_of_week,
            "servings": servings,
            "is_completed": is_completed,
            "order_index": order_index or 0,
            "created_at": now(),
        }
        await self.db.execute(weekly_menu_items.insert().values(**values))
        return await self.get(values["id"])

    async def update(self, id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        current = await self.get(id)
        if "day_of_week" in fields and await self._is_planned(
            current["recipe_id"], current["week_date"], fields["day_of_week"], exclude_id=id
        ):
            raise AlreadyExists("This recipe is already in the menu for this day")
        await self.db.execute(
            weekly_menu_items.update().where(weekly_menu_items.c.id == id).values(**fields)
        )
        return await self.get(id)

    async def delete(self, id: str) -> None:
        async with self.db.transaction():
            await self.db.execute(
                grocery_items.update()
                .where(grocery_items.c.from_weekmenu_id == id)
                .values(from_weekmenu_id=None)
            )
            await self.db.execute(weekly_menu_items.delete().where(weekly_menu_items.c.id == id))

    async def clear(self, week_date: str) -> None:
        ids = sa.select(weekly_menu_items.c.id).where(weekly_menu_items.c.week_date == week_date)
        async with self.db.transaction():
            await self.db.execute(
                grocery_items.update()
                .where(grocery_items.c.from_weekmenu_id.in_(ids))
                .values(from_weekmenu_id=None)
            )
            await self.db.execute(
                weekly_menu_items.delete().where(weekly_menu_items.c.week_date == week_date)
            )

    async def update_servings(self, recipe_id: str, week_date: str, servings: int) -> None:
        await self.db.execute(
            weekly_menu_items.update()
            .where(
                weekly_menu_items.c.recipe_id == recipe_id,
                weekly_menu_items.c.week_date == week_date,
            )
            .values(servings=servings)
        )

    async def open_items(self, week_date: str) -> list[dict[str, Any]]:
        rows = await self.db.fetch_all(
            weekly_menu_items.select().where(
                weekly_menu_items.c.week_date == week_date,
                weekly_menu_items.c.is_completed.is_(False),
            )
        )
        return [row_to_dict(r, weekly_menu_items) for r in rows]


class GroceryRepository:
    def __init__(self, db: Database) -> None:
        self.db = db

    async def categories(self, *, visible_only: bool = True) -> list[dict[str, Any]]:
        query = grocery_categories.select().order_by(grocery_categories.c.order_index)
        if visible_only:
            query = query.where(grocery_categories.c.is_visible.is_(True))
        return [row_to_dict(r, grocery_categories) for r in await self.db.fetch_all(query)]

    async def category(self, id: str) -> dict[str, Any]:
        row = await self.db.fetch_one(
            grocery_categories.select().where(grocery_categories.c.id == id)
        )
        if row is None:
            raise NotFound("Category not found")
        return row_to_dict(row, grocery_categories)

    async def _slug_taken(self, slug: str, exclude_id: str | None = None) -> bool:
        query = sa.select(grocery_categories.c.id).where(grocery_categories.c.slug == slug)
        if exclude_id is not None:
            query = query.where(grocery_categories.c.id != exclude_id)
        return await self.db.fetch_one(query) is not None

    async def create_category(
        self,
        *,
        name: str,
        color: str | None = None,
        icon: str | None = None,
        order_index: int | None = None,
    ) -> dict[str, Any]:
        slug = slugify(name)
        if await self._slug_taken(slug):
            raise AlreadyExists("Category with this name already exists")
        if order_index is None:
            last = await self.db.fetch_val(sa.select(sa.func.max(grocery_categories.c.order_index)))
            order_index = 0 if last is None else last + 1
        values = {
            "id": new_id(),
            "name": name,
            "slug": slug,
            "icon": icon,
            "color": color,
            "order_index": order_index,
            "is_system": False,
            "is_visible": True,
            "created_at": now(),
        }
        await self.db.execute(grocery_categories.insert().values(**values))
        return values

    async def update_category(self, id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        await self.category(id)
        values = dict(fields)
        if "name" in values:
            values["slug"] = slugify(values["name"])
            if await self._slug_taken(values["slug"], exclude_id=id):
                raise AlreadyExists("Category with this name already exists")
        await self.db.execute(
            grocery_categories.update().where(grocery_categories.c.id == id).values(**values)
        )
        return await self.category(id)

    async def delete_category(self, id: str) -> None:
        category = await self.category(id)
        if category["is_system"]:
            raise Forbidden("Cannot delete system category")
        async with self.db.transaction():
            await self.db.execute(
                grocery_items.update()
                .where(grocery_items.c.category_id == id)
                .values(category_id=None)
            )
            await self.db.execute(grocery_categories.delete().where(grocery_categories.c.id == id))

    async def _with_categories(self, rows: Iterable[Any]) -> list[dict[str, Any]]:
        items = [row_to_dict(r, grocery_items) for r in rows]
        by_id = {c["id"]: c for c in await self.categories(visible_only=False)}
        for item in items:
            item["category"] = by_id.get(item["category_id"])
        return items

    async def items(self) -> list[dict[str, Any]]:
        query = grocery_items.select().order_by(grocery_items.c.created_at, grocery_items.c.id)
        return await self._with_categories(await self.db.fetch_all(query))

    async def item(self, id: str) -> dict[str, Any]:
        row = await self.db.fetch_one(grocery_items.select().where(grocery_items.c.id == id))
        if row is None:
            raise NotFound("Grocery item not found")
        (item,) = await self._with_categories([row])
        return item

    async def _check_references(self, item: Mapping[str, Any]) -> None:
        checks = (
            ("category_id", grocery_categories),
            ("from_recipe_id", recipes),
            ("from_weekmenu_id", weekly_menu_items),
        )
        for key, table in checks:
            value = item.get(key)
            if value is None:
                continue
            row = await self.db.fetch_one(sa.select(table.c.id).where(table.c.id == value))
            if row is None:
                raise NotFound("Category, recipe, or weekmenu item not found")

    async def create_items(self, items: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        ids = []
        async with self.db.transaction():
            for item in items:
                await self._check_references(item)
                timestamp = now()
                values = {
                    "id": new_id(),
                    "name": item["name"],
                    "amount": item.get("amount"),
                    "original_amount": item.get("original_amount"),
                    "category_id": item.get("category_id"),
                    "is_checked": False,
                    "from_recipe_id": item.get("from_recipe_id"),
                    "from_weekmenu_id": item.get("from_weekmenu_id"),
                    "created_at": timestamp,
                    "updated_at": timestamp,
                }
                await self.db.execute(grocery_items.insert().values(**values))
                ids.append(values["id"])
        rows = await self.db.fetch_all(
            grocery_items.select().where(grocery_items.c.id.in_(ids))
        )
        created = {item["id"]: item for item in await self._with_categories(rows)}
        return [created[id] for id in ids]

    async def update_item(self, id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        await self.item(id)
        await self._check_references(fields)
        values = dict(fields)
        values["updated_at"] = now()
        await self.db.execute(grocery_items.update().where(grocery_items.c.id == id).values(**values))
        return await self.item(id)

    async def delete_item(self, id: str) -> None:
        await self.db.execute(grocery_items.delete().where(grocery_items.c.id == id))

    async def clear(self, *, checked_only: bool) -> None:
        query = grocery_items.delete()
        if checked_only:
            query = query.where(grocery_items.c.is_checked.is_(True))
        await self.db.execute(query)

    async def clear_synced(self) -> None:
        await self.db.execute(
            grocery_items.delete().where(grocery_items.c.from_weekmenu_id.is_not(None))
        )
