import contextlib
import functools
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from databases import Database
import httpx
import openai
from rich.logging import RichHandler
from starlette.applications import Starlette
from starlette.datastructures import UploadFile
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from app import config
from domain.categories import group_categories_by_type, type_color
from domain.llm_service import LLMResponseError, LLMService, NoSpeech
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
from domain.services import (
    add_grocery_items,
    boolean,
    categorize_items,
    copy_week,
    create_manual_recipe,
    grouped_groceries,
    import_recipe_from_url,
    integer,
    list_recipes,
    plan_recipe,
    positive_int,
    recipe_detail,
    string,
    sync_groceries_from_week,
    update_planned_recipe,
    update_recipe,
)
from domain.servings import InvalidArgument
from domain.slugs import slugify
from domain.webpage import LoginRequired
from domain.weeks import group_items_by_day, parse_week_date, week_info


logger = logging.getLogger(__name__)


JSONResult = Any  # body, or (body, status code)


def aJSONResponse(route: Callable[[Request], Awaitable[JSONResult]]):
    @functools.wraps(route)
    async def wrapper(request: Request) -> JSONResponse:
        resp = await route(request)
        if not isinstance(resp, tuple):
            data, code = resp, 200
        else:
            data, code = resp
        return JSONResponse(data, status_code=code)

    return wrapper


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )


async def json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise InvalidArgument("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise InvalidArgument("Expected a JSON object")
    return body


def query_int(request: Request, name: str, default: int | None = None) -> int | None:
    value = request.query_params.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise InvalidArgument(f"{name} must be an integer") from e


def split_ids(value: str | None) -> list[str]:
    return [id for id in (value or "").split(",") if id]


def required(body: dict[str, Any], name: str, message: str | None = None) -> Any:
    value = body.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgument(message or f"{name} is required")
    return value


async def audio_upload(request: Request, *, min_bytes: int = 0) -> tuple[str, bytes]:
    cfg: config.Config = request.app.state.config
    async with request.form() as form:
        audio = form.get("audio")
        if not isinstance(audio, UploadFile):
            raise InvalidArgument("Geen audio bestand ontvangen")
        content = await audio.read()
        filename = audio.filename or "opname.webm"

    if len(content) > cfg.max_audio_bytes:
        raise InvalidArgument("Audio bestand is te groot (max 10MB)")
    if len(content) < max(min_bytes, 1):
        raise InvalidArgument(
            "Opname is te kort of leeg. Spreek duidelijk je boodschappenlijst in en probeer opnieuw."
        )
    logger.info("Received %d bytes of audio (%s)", len(content), filename)
    return filename, content


# Recipes


@aJSONResponse
async def recipes_index(request: Request) -> JSONResult:
    cfg: config.Config = request.app.state.config
    page = query_int(request, "page", 0)
    page_size = query_int(request, "pageSize", cfg.default_page_size)
    assert page is not None and page_size is not None
    if page < 0 or page_size <= 0:
        raise InvalidArgument("page must be >= 0 and pageSize > 0")

    params = request.query_params
    weekmenu_ids = split_ids(params["weekmenuIds"]) if "weekmenuIds" in params else None
    return await list_recipes(
        recipes=request.app.state.recipes,
        categories=request.app.state.categories,
        search=params.get("search", ""),
        favorites=params.get("favorites") == "true",
        category_ids=split_ids(params.get("categoryIds")),
        weekmenu_ids=weekmenu_ids,
        page=page,
        page_size=page_size,
    )


@aJSONResponse
async def recipe_manual(request: Request) -> JSONResult:
    body = await json_body(request)
    recipe = await create_manual_recipe(
        body,
        recipes=request.app.state.recipes,
        categories=request.app.state.categories,
    )
    return {"recipeId": recipe.id, "slug": recipe.slug}


@aJSONResponse
async def recipe_voice(request: Request) -> JSONResult:
    audio = await audio_upload(request)
    llm: LLMService = request.app.state.llm
    recipe, transcript = await llm.recipe_from_audio(audio)
    logger.info("Recipe %r from voice", recipe["title"])
    return {"recipe": recipe, "transcript": transcript}


@aJSONResponse
async def recipe(request: Request) -> JSONResult:
    slug = request.path_params["slug"]
    repo: RecipeRepository = request.app.state.recipes
    match request.method.lower():
        case "get":
            servings = query_int(request, "servings")
            return await recipe_detail(
                slug,
                recipes=repo,
                categories=request.app.state.categories,
                servings=servings,
            )
        case "put":
            body = await json_body(request)
            updated = await update_recipe(slug, body, recipes=repo)
            return {"success": True, "recipe": updated.to_dict()}
        case "delete":
            found = await repo.get_by_slug(slug)
            await repo.delete(found.id)
            logger.info("Deleted %s", found)
            return {"success": True}
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def recipe_categories(request: Request) -> JSONResult:
    found = await request.app.state.recipes.get_by_slug(request.path_params["slug"])
    repo: CategoryRepository = request.app.state.categories
    match request.method.lower():
        case "get":
            linked = await repo.categories_for_recipes([found.id])
            return linked[found.id]
        case "post":
            body = await json_body(request)
            category_id = required(body, "category_id")
            return await repo.link(found.id, category_id), 201
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def recipe_category(request: Request) -> JSONResult:
    found = await request.app.state.recipes.get_by_slug(request.path_params["slug"])
    await request.app.state.categories.unlink(found.id, request.path_params["category_id"])
    return {"success": True}


# AI and import


@aJSONResponse
async def import_recipe(request: Request) -> JSONResult:
    body = await json_body(request)
    url = str(required(body, "url", "URL is required")).strip()
    if not url.startswith(("http://", "https://")):
        raise InvalidArgument("URL must start with http:// or https://")

    cfg: config.Config = request.app.state.config
    async with httpx.AsyncClient(timeout=cfg.http_timeout, follow_redirects=True) as client:
        imported = await import_recipe_from_url(
            url,
            recipes=request.app.state.recipes,
            categories=request.app.state.categories,
            llm=request.app.state.llm,
            http_client=client,
        )
    return {"success": True, "recipeId": imported.id, "slug": imported.slug}, 201


@aJSONResponse
async def inspiration(request: Request) -> JSONResult:
    body = await json_body(request)
    message = body.get("message")
    if not message or not isinstance(message, str):
        raise InvalidArgument("Bericht is verplicht")
    history = body.get("history")
    history = [h for h in history if isinstance(h, dict)] if isinstance(history, list) else []

    llm: LLMService = request.app.state.llm
    return {"reply": await llm.chat_reply(message, history)}


@aJSONResponse
async def inspiration_parse_recipe(request: Request) -> JSONResult:
    body = await json_body(request)
    message = body.get("message")
    if not message or not isinstance(message, str):
        raise InvalidArgument("Bericht is verplicht")
    llm: LLMService = request.app.state.llm
    return {"recipe": await llm.parse_recipe(message)}


# Categories


@aJSONResponse
async def categories_index(request: Request) -> JSONResult:
    repo: CategoryRepository = request.app.state.categories
    match request.method.lower():
        case "get":
            return await repo.list_categories()
        case "post":
            body = await json_body(request)
            name = str(required(body, "name", "Name is required")).strip()
            type_id = body.get("type_id") or None
            color = body.get("color")
            if not color and type_id is not None:
                color = type_color((await repo.get_type(type_id))["slug"])
            return await repo.create(name=name, color=color or type_color(""), type_id=type_id), 201
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def categories_grouped(request: Request) -> JSONResult:
    repo: CategoryRepository = request.app.state.categories
    return group_categories_by_type(await repo.list_categories(), await repo.list_types())


@aJSONResponse
async def category(request: Request) -> JSONResult:
    id = request.path_params["id"]
    repo: CategoryRepository = request.app.state.categories
    match request.method.lower():
        case "patch":
            body = await json_body(request)
            name = str(required(body, "name", "Name is required")).strip()
            current = await repo.get(id)
            return await repo.update(id, name=name, color=body.get("color") or current["color"])
        case "delete":
            await repo.delete(id)
            return {"success": True}
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def category_types_index(request: Request) -> JSONResult:
    repo: CategoryRepository = request.app.state.categories
    match request.method.lower():
        case "get":
            return await repo.list_types()
        case "post":
            body = await json_body(request)
            name = str(required(body, "name", "Name is required")).strip()
            slug = slugify(str(required(body, "slug", "Slug is required")))
            created = await repo.create_type(
                name=name,
                slug=slug,
                description=body.get("description"),
                allow_multiple=bool(body.get("allow_multiple", True)),
                order_index=body.get("order_index"),
            )
            return created, 201
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def category_type(request: Request) -> JSONResult:
    id = request.path_params["id"]
    repo: CategoryRepository = request.app.state.categories
    match request.method.lower():
        case "patch":
            body = await json_body(request)
            fields = {
                k: body[k]
                for k in ("name", "description", "allow_multiple", "order_index")
                if k in body
            }
            if "name" in fields and not str(fields["name"] or "").strip():
                raise InvalidArgument("Name is required")
            if "description" in fields:
                string(fields["description"], "description")
            if "allow_multiple" in fields:
                boolean(fields["allow_multiple"], "allow_multiple")
            if "order_index" in fields:
                integer(fields["order_index"], "order_index")
            return await repo.update_type(id, fields)
        case "delete":
            await repo.delete_type(id)
            return {"success": True}
        case _:
            raise ValueError("Unsupported method.")


# Week menu


@aJSONResponse
async def weekmenu_index(request: Request) -> JSONResult:
    repo: WeekMenuRepository = request.app.state.weekmenu
    match request.method.lower():
        case "get":
            week = request.query_params.get("week")
            if not week:
                raise InvalidArgument("week parameter is required (format: YYYY-MM-DD)")
            date = parse_week_date(week)
            items = await repo.list_week(week)
            if request.query_params.get("grouped") == "true":
                return {**group_items_by_day(items), "week": week_info(date)}
            return items
        case "post":
            body = await json_body(request)
            return await plan_recipe(body, weekmenu=repo), 201
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def weekmenu_item(request: Request) -> JSONResult:
    id = request.path_params["id"]
    repo: WeekMenuRepository = request.app.state.weekmenu
    match request.method.lower():
        case "put":
            body = await json_body(request)
            return await update_planned_recipe(id, body, weekmenu=repo)
        case "delete":
            await repo.delete(id)
            return {"success": True, "message": "Weekly menu item deleted"}
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def weekmenu_clear(request: Request) -> JSONResult:
    body = await json_body(request)
    week = required(body, "week", "week parameter is required (format: YYYY-MM-DD)")
    parse_week_date(week)
    await request.app.state.weekmenu.clear(week)
    return {"success": True, "message": "Weekly menu cleared"}


@aJSONResponse
async def weekmenu_copy(request: Request) -> JSONResult:
    body = await json_body(request)
    message = "Both from_week and to_week are required (format: YYYY-MM-DD)"
    from_week = required(body, "from_week", message)
    to_week = required(body, "to_week", message)
    items = await copy_week(from_week, to_week, weekmenu=request.app.state.weekmenu)
    return {"success": True, "message": f"Copied {len(items)} items", "items": items}, 201


@aJSONResponse
async def weekmenu_update_servings(request: Request) -> JSONResult:
    body = await json_body(request)
    message = "Missing required fields"
    recipe_id = required(body, "recipe_id", message)
    week_date = required(body, "week_date", message)
    servings = positive_int(required(body, "servings", message), "servings")
    parse_week_date(week_date)
    await request.app.state.weekmenu.update_servings(recipe_id, week_date, servings)
    return {"success": True}


# Groceries


@aJSONResponse
async def groceries_index(request: Request) -> JSONResult:
    repo: GroceryRepository = request.app.state.groceries
    match request.method.lower():
        case "get":
            return await grouped_groceries(groceries=repo)
        case "post":
            body = await json_body(request)
            batch = "items" in body
            items = body["items"] if batch else [body]
            if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
                raise InvalidArgument("items must be a list of objects")
            created = await add_grocery_items(items, groceries=repo, llm=request.app.state.llm)
            return (created if batch else created[0]), 201
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def grocery_item(request: Request) -> JSONResult:
    id = request.path_params["id"]
    repo: GroceryRepository = request.app.state.groceries
    match request.method.lower():
        case "put":
            body = await json_body(request)
            fields = {k: body[k] for k in ("name", "amount", "category_id", "is_checked") if k in body}
            if "name" in fields and not str(fields["name"] or "").strip():
                raise InvalidArgument("name cannot be empty")
            if "is_checked" in fields:
                boolean(fields["is_checked"], "is_checked")
            if "amount" in fields:
                string(fields["amount"], "amount")
            return await repo.update_item(id, fields)
        case "delete":
            await repo.delete_item(id)
            return {"success": True, "message": "Grocery item deleted"}
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def groceries_clear(request: Request) -> JSONResult:
    mode = request.query_params.get("mode", "checked")
    if mode not in ("checked", "all"):
        raise InvalidArgument('Invalid mode. Use "checked" or "all"')
    await request.app.state.groceries.clear(checked_only=mode == "checked")
    return {"success": True, "message": f"Cleared {mode} items"}


@aJSONResponse
async def groceries_sync(request: Request) -> JSONResult:
    body = await json_body(request)
    week_date = required(body, "week_date", "week_date is required (format: YYYY-MM-DD)")
    result = await sync_groceries_from_week(
        week_date,
        clear_existing=bool(body.get("clear_existing", False)),
        weekmenu=request.app.state.weekmenu,
        recipes=request.app.state.recipes,
        groceries=request.app.state.groceries,
    )
    return {"success": True, **result}, 201


@aJSONResponse
async def groceries_bulk_parse(request: Request) -> JSONResult:
    body = await json_body(request)
    text = body.get("text")
    if not text or not isinstance(text, str) or not text.strip():
        raise InvalidArgument("Text is required")
    llm: LLMService = request.app.state.llm
    parsed = await llm.grocery_items_from_text(text)
    items = await categorize_items(parsed, groceries=request.app.state.groceries, llm=llm)
    return {"items": items}


@aJSONResponse
async def groceries_voice(request: Request) -> JSONResult:
    cfg: config.Config = request.app.state.config
    audio = await audio_upload(request, min_bytes=cfg.min_grocery_audio_bytes)
    llm: LLMService = request.app.state.llm
    parsed = await llm.grocery_items_from_audio(audio)
    items = await categorize_items(parsed, groceries=request.app.state.groceries, llm=llm)
    return {"items": items}


@aJSONResponse
async def grocery_categories_index(request: Request) -> JSONResult:
    repo: GroceryRepository = request.app.state.groceries
    match request.method.lower():
        case "get":
            return await repo.categories()
        case "post":
            body = await json_body(request)
            name = str(required(body, "name")).strip()
            created = await repo.create_category(
                name=name,
                color=body.get("color"),
                icon=body.get("icon"),
                order_index=body.get("order_index"),
            )
            return created, 201
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def grocery_category(request: Request) -> JSONResult:
    id = request.path_params["id"]
    repo: GroceryRepository = request.app.state.groceries
    match request.method.lower():
        case "put":
            body = await json_body(request)
            fields = {
                k: body[k]
                for k in ("name", "color", "icon", "order_index", "is_visible")
                if k in body
            }
            if not fields:
                raise InvalidArgument("No fields to update")
            if "name" in fields and not str(fields["name"] or "").strip():
                raise InvalidArgument("name cannot be empty")
            if "is_visible" in fields:
                boolean(fields["is_visible"], "is_visible")
            if "order_index" in fields:
                integer(fields["order_index"], "order_index")
            for name in ("color", "icon"):
                if name in fields:
                    string(fields[name], name)
            return await repo.update_category(id, fields)
        case "delete":
            await repo.delete_category(id)
            return {"success": True, "message": "Category deleted"}
        case _:
            raise ValueError("Unsupported method.")


def error_handler(status_code: int, message: str | None = None):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        return JSONResponse({"error": message or str(exc)}, status_code=status_code)

    return handler


EXCEPTION_HANDLERS = {
    InvalidArgument: error_handler(400),
    NoSpeech: error_handler(400),
    Forbidden: error_handler(403),
    LoginRequired: error_handler(
        403,
        "Login vereist. Deze website vereist inloggen. Kopieer de pagina en voeg het recept handmatig toe.",
    ),
    NotFound: error_handler(404),
    AlreadyExists: error_handler(409),
    openai.RateLimitError: error_handler(429, "API limiet bereikt. Probeer later opnieuw."),
    LLMResponseError: error_handler(502, "AI kon geen geldig antwoord maken. Probeer opnieuw."),
    openai.OpenAIError: error_handler(502, "Er ging iets mis met de AI. Probeer opnieuw."),
    httpx.HTTPError: error_handler(502, "Kon de pagina niet ophalen."),
}


ROUTES = [
    Route("/api/recipes", recipes_index),
    Route("/api/recipes/manual", recipe_manual, methods=["POST"]),
    Route("/api/recipes/voice", recipe_voice, methods=["POST"]),
    Route("/api/recipes/{slug}", recipe, methods=["GET", "PUT", "DELETE"]),
    Route("/api/recipes/{slug}/categories", recipe_categories, methods=["GET", "POST"]),
    Route(
        "/api/recipes/{slug}/categories/{category_id}",
        recipe_category,
        methods=["DELETE"],
    ),
    Route("/api/import", import_recipe, methods=["POST"]),
    Route("/api/inspiration", inspiration, methods=["POST"]),
    Route("/api/inspiration/parse-recipe", inspiration_parse_recipe, methods=["POST"]),
    Route("/api/categories", categories_index, methods=["GET", "POST"]),
    Route("/api/categories/grouped", categories_grouped),
    Route("/api/categories/{id}", category, methods=["PATCH", "DELETE"]),
    Route("/api/category-types", category_types_index, methods=["GET", "POST"]),
    Route("/api/category-types/{id}", category_type, methods=["PATCH", "DELETE"]),
    Route("/api/weekmenu", weekmenu_index, methods=["GET", "POST"]),
    Route("/api/weekmenu/clear", weekmenu_clear, methods=["POST"]),
    Route("/api/weekmenu/copy", weekmenu_copy, methods=["POST"]),
    Route("/api/weekmenu/update-servings", weekmenu_update_servings, methods=["POST"]),
    Route("/api/weekmenu/{id}", weekmenu_item, methods=["PUT", "DELETE"]),
    Route("/api/groceries", groceries_index, methods=["GET", "POST"]),
    Route("/api/groceries/clear", groceries_clear, methods=["DELETE"]),
    Route("/api/groceries/sync", groceries_sync, methods=["POST"]),
    Route("/api/groceries/bulk-parse", groceries_bulk_parse, methods=["POST"]),
    Route("/api/groceries/voice", groceries_voice, methods=["POST"]),
    Route("/api/groceries/categories", grocery_categories_index, methods=["GET", "POST"]),
    Route("/api/groceries/categories/{id}", grocery_category, methods=["PUT", "DELETE"]),
    Route("/api/groceries/{id}", grocery_item, methods=["PUT", "DELETE"]),
]


def create_app(
    cfg: config.Config | None = None,
    llm: LLMService | None = None,
) -> Starlette:
    cfg = config.Config() if cfg is None else cfg
    configure_logging(cfg.log_level)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        db = Database(cfg.db_url)
        await db.connect()
        await create_tables(db)
        app.state.db = db
        app.state.recipes = RecipeRepository(db)
        app.state.categories = CategoryRepository(db)
        app.state.weekmenu = WeekMenuRepository(db)
        app.state.groceries = GroceryRepository(db)
        app.state.llm = (
            LLMService(model=cfg.core_model, transcription_model=cfg.transcription_model)
            if llm is None
            else llm
        )
        logger.info("Kookboek ready on %s", cfg.db_url)
        try:
            yield
        finally:
            await db.disconnect()

    app = Starlette(
        debug=True if cfg.env == config.Env.local else False,
        routes=ROUTES,
        exception_handlers=EXCEPTION_HANDLERS,  # pyright: ignore[reportArgumentType]
        lifespan=lifespan,
    )
    app.state.config = cfg
    return app


app = create_app()
