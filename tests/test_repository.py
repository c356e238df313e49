from databases import Database
import pytest

from domain.repository import (
    AlreadyExists,
    CategoryRepository,
    Forbidden,
    GroceryRepository,
    NotFound,
    RecipeRepository,
    WeekMenuRepository,
    create_tables,
)


INGREDIENTS = [
    {"ingredient_name_nl": "spaghetti", "amount": 400.0, "unit": "g", "amount_display": "400g", "scalable": True},
    {"ingredient_name_nl": "zout", "amount": None, "unit": None, "amount_display": "", "scalable": False},
]


@pytest.mark.asyncio
async def test_tables_are_seeded_once(db_url: str) -> None:
    async with Database(db_url) as db:
        await create_tables(db)
        await create_tables(db)
        types = await CategoryRepository(db).list_types()
        assert [t["slug"] for t in types] == ["gang", "uitgever"]
        categories = await GroceryRepository(db).categories()
        assert len(categories) == 11
        assert categories[0]["slug"] == "groenten-fruit"
        assert categories[-1]["slug"] == "overige"
        assert all(c["is_system"] for c in categories)


@pytest.mark.asyncio
async def test_recipe_round_trip(db_url: str) -> None:
    async with Database(db_url) as db:
        await create_tables(db)
        repo = RecipeRepository(db)
        recipe = await repo.create({"title": "Carbonara", "slug": "carbonara"}, INGREDIENTS)
        assert recipe.servings_default == 4
        assert recipe.is_favorite is False

        found = await repo.get_by_slug("carbonara")
        assert found.id == recipe.id
        ingredients = await repo.ingredients(recipe.id)
        assert [i["ingredient_name_nl"] for i in ingredients] == ["spaghetti", "zout"]
        assert [i["order_index"] for i in ingredients] == [0, 1]
        assert await repo.taken_slugs("carbonara") == {"carbonara"}

        await repo.delete(recipe.id)
        with pytest.raises(NotFound):
            await repo.get(recipe.id)
        assert await repo.ingredients(recipe.id) == []


@pytest.mark.asyncio
async def test_recipe_list_search_and_paging(db_url: str) -> None:
    async with Database(db_url) as db:
        await create_tables(db)
        repo = RecipeRepository(db)
        for i in range(5):
            await repo.create({"title": f"Soep {i}", "slug": f"soep-{i}"})
        await repo.create({"title": "Tiramisu", "slug": "tiramisu", "is_favorite": True})

        page, total = await repo.list_page(search="soep", limit=2)
        assert total == 5
        assert len(page) == 2

        favorites, total = await repo.list_page(favorites=True)
        assert [r.slug for r in favorites] == ["tiramisu"]

        some, total = await repo.list_page(ids=[favorites[0].id])
        assert total == 1


@pytest.mark.asyncio
async def test_category_links(db_url: str) -> None:
    async with Database(db_url) as db:
        await create_tables(db)
        recipes = RecipeRepository(db)
        categories = CategoryRepository(db)
        recipe = await recipes.create({"title": "Soep", "slug": "soep"})

        soep = await categories.get_or_create("Soep", "gang", is_system=True)
        assert soep is not None
        assert await categories.get_or_create("Soep", "gang") == soep
        assert await categories.get_or_create("Soep", "bestaat-niet") is None

        await categories.link(recipe.id, soep)
        with pytest.raises(AlreadyExists):
            await categories.link(recipe.id, soep)
        assert await categories.associations([soep]) == [(recipe.id, soep)]

        linked = await categories.categories_for_recipes([recipe.id])
        assert linked[recipe.id][0]["category_type"]["slug"] == "gang"

        await categories.delete(soep)
        assert await categories.associations([soep]) == []


@pytest.mark.asyncio
async def test_deleting_a_type_keeps_its_categories(db_url: str) -> None:
    async with Database(db_url) as db:
        await create_tables(db)
        categories = CategoryRepository(db)
        seizoen = await categories.create_type(name="Seizoen", slug="seizoen")
        zomer = await categories.create(name="Zomer", color="#f00", type_id=seizoen["id"])
        with pytest.raises(AlreadyExists):
            await categories.create(name="zomer", color="#0f0", type_id=seizoen["id"])

        await categories.delete_type(seizoen["id"])
        assert (await categories.get(zomer["id"]))["type_id"] is None


@pytest.mark.asyncio
async def test_weekmenu_uniqueness(db_url: str) -> None:
    async with Database(db_url) as db:
        await create_tables(db)
        recipe = await RecipeRepository(db).create({"title": "Soep", "slug": "soep"})
        weekmenu = WeekMenuRepository(db)

        item = await weekmenu.create(recipe_id=recipe.id, week_date="2024-03-11", day_of_week=0)
        assert item["recipe"]["slug"] == "soep"
        with pytest.raises(AlreadyExists):
            await weekmenu.create(recipe_id=recipe.id, week_date="2024-03-11", day_of_week=0)
        await weekmenu.create(recipe_id=recipe.id, week_date="2024-03-11", day_of_week=1)
        await weekmenu.create(recipe_id=recipe.id, week_date="2024-03-11")
        with pytest.raises(NotFound):
            await weekmenu.create(recipe_id="missing", week_date="2024-03-11")

        days = [i["day_of_week"] for i in await weekmenu.list_week("2024-03-11")]
        assert days == [0, 1, None]


@pytest.mark.asyncio
async def test_grocery_categories(db_url: str) -> None:
    async with Database(db_url) as db:
        await create_tables(db)
        groceries = GroceryRepository(db)
        system = (await groceries.categories())[0]
        with pytest.raises(Forbidden):
            await groceries.delete_category(system["id"])

        custom = await groceries.create_category(name="Babyspullen", icon="🍼")
        with pytest.raises(AlreadyExists):
            await groceries.create_category(name="babyspullen")
        (item,) = await groceries.create_items([{"name": "luiers", "category_id": custom["id"]}])
        assert item["category"]["slug"] == "babyspullen"

        await groceries.delete_category(custom["id"])
        assert (await groceries.item(item["id"]))["category_id"] is None

        with pytest.raises(NotFound):
            await groceries.create_items([{"name": "melk", "category_id": "missing"}])
