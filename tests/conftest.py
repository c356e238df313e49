import re
from types import SimpleNamespace
from typing import Any, Iterator

import pytest
from starlette.testclient import TestClient

from app.app import create_app
from app.config import Config
from domain.llm_service import LLMService


CATEGORIZE_RE = re.compile(r'Ingredient to categorize: "(.*)"')


class StubCompletions:
    """Answers chat completions from a queue, grocery categorization from a map."""

    def __init__(self) -> None:
        self.replies: list[str] = []
        self.categories: dict[str, str] = {}
        self.calls: list[list[dict[str, Any]]] = []

    async def create(self, *, model: str, messages: list[dict[str, Any]], **kwargs: Any):
        self.calls.append(list(messages))
        match = CATEGORIZE_RE.search(messages[-1]["content"])
        if match:
            content = self.categories.get(match[1], "overige")
        else:
            content = self.replies.pop(0)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class StubTranscriptions:
    def __init__(self) -> None:
        self.text = ""
        self.files: list[Any] = []

    async def create(self, *, file: Any, model: str, **kwargs: Any):
        self.files.append(file)
        return SimpleNamespace(text=self.text)


class StubOpenAI:
    def __init__(self) -> None:
        self.completions = StubCompletions()
        self.transcriptions = StubTranscriptions()
        self.chat = SimpleNamespace(completions=self.completions)
        self.audio = SimpleNamespace(transcriptions=self.transcriptions)


@pytest.fixture
def openai_stub() -> StubOpenAI:
    return StubOpenAI()


@pytest.fixture
def llm(openai_stub: StubOpenAI) -> LLMService:
    return LLMService(openai_client=openai_stub)  # pyright: ignore[reportArgumentType]


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'kookboek.db'}"


@pytest.fixture
def client(db_url: str, llm: LLMService) -> Iterator[TestClient]:
    app = create_app(Config(db_url=db_url), llm=llm)
    with TestClient(app) as client:
        yield client


def add_recipe(client: TestClient, **fields: Any) -> dict[str, Any]:
    payload = {
        "title": "Spaghetti Carbonara",
        "ingredients": ["400g spaghetti", "4 eieren", "100 g pecorino", "zwarte peper naar smaak"],
        "instructions": "1. Kook de pasta.\n2. Meng met de eieren.",
        "servings": 4,
        "gang": "Hoofdgerecht",
    }
    payload.update(fields)
    resp = client.post("/api/recipes/manual", json=payload)
    assert resp.status_code == 200, resp.text
    return resp.json()
