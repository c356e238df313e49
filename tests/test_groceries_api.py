import json

from starlette.testclient import TestClient

from app.app import create_app
from app.config import Config
from conftest import add_recipe


WEEK = "2024-03-11"


def grocery_category(client: TestClient, slug: str) -> dict:
    (found,) = [c for c in client.get("/api/groceries/categories").json() if c["slug"] == slug]
    return found


def test_add_grocery_item(client: TestClient, openai_stub) -> None:
    openai_stub.completions.categories["melk"] = "zuivel-eieren"
    resp = client.post("/api/groceries", json={"name": "melk", "amount": "2 liter"})
    assert resp.status_code == 201
    item = resp.json()
    assert item["name"] == "melk"
    assert item["amount"] == "2 liter"
    assert not item["is_checked"]
    assert item["category"]["slug"] == "zuivel-eieren"


def test_add_grocery_items_in_batch(client: TestClient, openai_stub) -> None:
    openai_stub.completions.categories["appels"] = "groenten-fruit"
    dranken = grocery_category(client, "dranken")
    resp = client.post(
        "/api/groceries",
        json={"items": [{"name": "appels"}, {"name": "cola", "category_id": dranken["id"]}]},
    )
    assert resp.status_code == 201
    items = resp.json()
    assert [i["category"]["slug"] for i in items] == ["groenten-fruit", "dranken"]
    # cola came with a category, only appels was asked for
    assert len(openai_stub.completions.calls) == 1


def test_add_grocery_items_validates(client: TestClient) -> None:
    assert client.post("/api/groceries", json={"items": []}).status_code == 400
    assert client.post("/api/groceries", json={"name": "  "}).status_code == 400
    assert client.post("/api/groceries", json={"items": "melk"}).status_code == 400
    resp = client.post("/api/groceries", json={"name": "melk", "category_id": "bestaat-niet"})
    assert resp.status_code == 404


def test_grouped_groceries(client: TestClient, openai_stub) -> None:
    openai_stub.completions.categories["melk"] = "zuivel-eieren"
    openai_stub.completions.categories["kaas"] = "zuivel-eieren"
    client.post("/api/groceries", json={"items": [{"name": "melk"}, {"name": "kaas"}]})
    (item,) = client.post("/api/groceries", json={"items": [{"name": "wasmiddel"}]}).json()
    client.put(f"/api/groceries/{item['id']}", json={"is_checked": True})

    body = client.get("/api/groceries").json()
    assert (body["total"], body["checked"], body["unchecked"]) == (3, 1, 2)
    groups = {g["category"]["slug"]: [i["name"] for i in g["items"]] for g in body["grouped"]}
    assert len(groups) == 11
    assert sorted(groups["zuivel-eieren"]) == ["kaas", "melk"]
    assert groups["overige"] == ["wasmiddel"]
    assert groups["groenten-fruit"] == []


def test_items_of_hidden_categories_are_uncategorised(client: TestClient) -> None:
    diepvries = grocery_category(client, "diepvries")
    client.post("/api/groceries", json={"name": "erwtjes", "category_id": diepvries["id"]})
    client.put(f"/api/groceries/categories/{diepvries['id']}", json={"is_visible": False})

    body = client.get("/api/groceries").json()
    last = body["grouped"][-1]
    assert last["category"]["slug"] == "uncategorized"
    assert [i["name"] for i in last["items"]] == ["erwtjes"]
    assert "diepvries" not in {g["category"]["slug"] for g in body["grouped"]}


def test_update_and_delete_grocery_item(client: TestClient) -> None:
    item = client.post("/api/groceries", json={"name": "brood"}).json()
    url = f"/api/groceries/{item['id']}"

    updated = client.put(url, json={"name": "volkoren brood", "amount": "1"}).json()
    assert updated["name"] == "volkoren brood"
    assert updated["amount"] == "1"
    assert client.put(url, json={"name": ""}).status_code == 400
    assert client.put(url, json={"category_id": "bestaat-niet"}).status_code == 404
    assert client.put("/api/groceries/bestaat-niet", json={"name": "x"}).status_code == 404
    assert client.put(url, json={"is_checked": "ja"}).status_code == 400
    assert client.put(url, json={"is_checked": None}).status_code == 400

    assert client.delete(url).json()["success"] is True
    assert client.get("/api/groceries").json()["total"] == 0


def test_clear_groceries(client: TestClient) -> None:
    created = client.post(
        "/api/groceries",
        json={"items": [{"name": "melk"}, {"name": "kaas"}, {"name": "eieren"}]},
    ).json()
    client.put(f"/api/groceries/{created[0]['id']}", json={"is_checked": True})

    assert client.delete("/api/groceries/clear", params={"mode": "sommige"}).status_code == 400
    assert client.delete("/api/groceries/clear").status_code == 200
    assert client.get("/api/groceries").json()["total"] == 2
    assert client.delete("/api/groceries/clear", params={"mode": "all"}).status_code == 200
    assert client.get("/api/groceries").json()["total"] == 0


def test_sync_from_week_scales_amounts(client: TestClient) -> None:
    recipe_id = add_recipe(client)["recipeId"]
    client.post(
        "/api/weekmenu",
        json={"recipe_id": recipe_id, "week_date": WEEK, "day_of_week": 0, "servings": 8},
    )

    resp = client.post("/api/groceries/sync", json={"week_date": WEEK})
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Synced 4 items from 1 recipes"
    assert [(i["name"], i["amount"], i["original_amount"]) for i in body["items"]] == [
        ("spaghetti", "800 g", "400 g"),
        ("eieren", "8", "4"),
        ("pecorino", "200 g", "100 g"),
        ("zwarte peper naar smaak", None, None),
    ]
    assert all(i["from_recipe_id"] == recipe_id for i in body["items"])


def test_sync_from_week_skips_completed_and_clears(client: TestClient) -> None:
    first = add_recipe(client)["recipeId"]
    second = add_recipe(client, title="Omelet", ingredients=["3 eieren"])["recipeId"]
    client.post("/api/weekmenu", json={"recipe_id": first, "week_date": WEEK, "day_of_week": 0})
    done = client.post(
        "/api/weekmenu", json={"recipe_id": second, "week_date": WEEK, "day_of_week": 1}
    ).json()
    client.put(f"/api/weekmenu/{done['id']}", json={"is_completed": True})
    client.post("/api/groceries", json={"name": "koffie"})

    client.post("/api/groceries/sync", json={"week_date": WEEK})
    client.post("/api/groceries/sync", json={"week_date": WEEK, "clear_existing": True})
    names = [
        i["name"]
        for group in client.get("/api/groceries").json()["grouped"]
        for i in group["items"]
    ]
    assert sorted(names) == sorted(["koffie", "spaghetti", "eieren", "pecorino", "zwarte peper naar smaak"])


def test_sync_errors(client: TestClient) -> None:
    assert client.post("/api/groceries/sync", json={}).status_code == 400
    assert client.post("/api/groceries/sync", json={"week_date": "gisteren"}).status_code == 400
    assert client.post("/api/groceries/sync", json={"week_date": WEEK}).status_code == 404

    recipe_id = add_recipe(client, title="Water", ingredients=[])["recipeId"]
    client.post("/api/weekmenu", json={"recipe_id": recipe_id, "week_date": WEEK})
    resp = client.post("/api/groceries/sync", json={"week_date": WEEK})
    assert resp.status_code == 404
    assert resp.json() == {"error": "No ingredients found in menu recipes"}


def test_bulk_parse(client: TestClient, openai_stub) -> None:
    openai_stub.completions.replies.append(
        json.dumps([{"name": "bananen", "amount": "6"}, {"name": "koffie", "amount": ""}])
    )
    openai_stub.completions.categories["bananen"] = "groenten-fruit"
    openai_stub.completions.categories["koffie"] = "dranken"
    resp = client.post("/api/groceries/bulk-parse", json={"text": "6 bananen, koffie"})
    assert resp.status_code == 200
    items = resp.json()["items"]
    fruit = grocery_category(client, "groenten-fruit")
    assert items[0] == {"name": "bananen", "amount": "6", "category_id": fruit["id"]}
    # parsed only, nothing is stored
    assert client.get("/api/groceries").json()["total"] == 0

    assert client.post("/api/groceries/bulk-parse", json={"text": " "}).status_code == 400


def test_voice_groceries(client: TestClient, openai_stub) -> None:
    openai_stub.transcriptions.text = "een brood en twee liter melk"
    openai_stub.completions.replies.append(
        '{"items": [{"name": "brood", "amount": "1"}, {"name": "melk", "amount": "2 liter"}]}'
    )
    openai_stub.completions.categories["melk"] = "zuivel-eieren"
    audio = b"\x1a\x45\xdf\xa3" * 6000
    resp = client.post(
        "/api/groceries/voice", files={"audio": ("opname.webm", audio, "audio/webm")}
    )
    assert resp.status_code == 200
    assert [i["name"] for i in resp.json()["items"]] == ["brood", "melk"]


def test_voice_groceries_too_short(client: TestClient, openai_stub) -> None:
    resp = client.post(
        "/api/groceries/voice", files={"audio": ("opname.webm", b"\x00" * 1000, "audio/webm")}
    )
    assert resp.status_code == 400
    assert openai_stub.transcriptions.files == []


def test_voice_groceries_no_speech(client: TestClient, openai_stub) -> None:
    openai_stub.transcriptions.text = "..."
    openai_stub.completions.replies.append('{"error": "no_speech", "message": "Geen spraak gedetecteerd"}')
    resp = client.post(
        "/api/groceries/voice", files={"audio": ("opname.webm", b"\x00" * 30_000, "audio/webm")}
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Geen spraak gedetecteerd"}


def test_audio_too_large(db_url: str, llm) -> None:
    app = create_app(Config(db_url=db_url, max_audio_bytes=50_000), llm=llm)
    with TestClient(app) as client:
        resp = client.post(
            "/api/recipes/voice", files={"audio": ("opname.webm", b"\x00" * 60_000, "audio/webm")}
        )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Audio bestand is te groot (max 10MB)"}


def test_grocery_categories(client: TestClient) -> None:
    resp = client.post("/api/groceries/categories", json={"name": "Babyspullen", "icon": "🍼"})
    assert resp.status_code == 201
    created = resp.json()
    assert created["slug"] == "babyspullen"
    assert created["order_index"] == 11
    assert not created["is_system"]
    assert client.post("/api/groceries/categories", json={"name": "babyspullen"}).status_code == 409
    assert client.post("/api/groceries/categories", json={}).status_code == 400

    url = f"/api/groceries/categories/{created['id']}"
    renamed = client.put(url, json={"name": "Baby & Kind"}).json()
    assert renamed["slug"] == "baby-kind"
    assert client.put(url, json={}).status_code == 400
    assert client.put(url, json={"name": "Dranken"}).status_code == 409
    assert client.put(url, json={"is_visible": None}).status_code == 400
    assert client.put(url, json={"order_index": "eerst"}).status_code == 400
    assert client.put(url, json={"order_index": None}).json()["order_index"] is None

    assert client.delete(url).status_code == 200
    assert client.delete(url).status_code == 404

    overige = grocery_category(client, "overige")
    resp = client.delete(f"/api/groceries/categories/{overige['id']}")
    assert resp.status_code == 403
    assert resp.json() == {"error": "Cannot delete system category"}
