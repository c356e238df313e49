import json
import logging
import re
from typing import Any, Iterable

import openai
from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
)

from domain.aopenai import DEFAULT_MODEL, TRANSCRIPTION_MODEL, quick_chat, transcript_from_audio
from domain.prompts import (
    CATEGORIZE_PROMPT,
    CATEGORY_INFO,
    GROCERY_TEXT_PROMPT,
    GROCERY_TRANSCRIPT_PROMPT,
    INSPIRATION_PROMPT,
    PARSE_RECIPE_PROMPT,
    RECIPE_FROM_TRANSCRIPT_PROMPT,
    WEBPAGE_RECIPE_PROMPT,
)


logger = logging.getLogger(__name__)


FALLBACK_CATEGORY = "overige"

FENCE_RE = re.compile(r"```(?:json)?\n?")
OBJECT_RE = re.compile(r"\{[\s\S]*\}")
ARRAY_RE = re.compile(r"\[[\s\S]*\]")


class LLMResponseError(Exception):
    pass


class NoSpeech(Exception):
    pass


def extract_json(text: str, *, array: bool = False) -> Any:
    """First JSON object (or array) in a model answer, code fences removed."""
    cleaned = FENCE_RE.sub("", text).strip()
    match = (ARRAY_RE if array else OBJECT_RE).search(cleaned)
    if match is None:
        raise LLMResponseError(f"No JSON found in model output: {text[:200]!r}")
    try:
        return json.loads(match[0])
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Invalid JSON in model output: {e}") from e


def normalise_recipe(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict) or not data.get("title"):
        raise LLMResponseError("Kon geen titel vinden in het antwoord.")
    recipe = dict(data)
    if not isinstance(recipe.get("ingredients"), list):
        recipe["ingredients"] = []
    if not isinstance(recipe.get("instructions"), str):
        recipe["instructions"] = ""
    return recipe


def normalise_grocery_items(data: Any) -> list[dict[str, str]]:
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise LLMResponseError("Invalid response format from AI")
    items = []
    for entry in data:
        if not isinstance(entry, dict) or not str(entry.get("name") or "").strip():
            continue
        items.append(
            {
                "name": str(entry["name"]).strip(),
                "amount": str(entry.get("amount") or "").strip(),
            }
        )
    return items


class LLMService:
    def __init__(
        self,
        openai_client: openai.AsyncClient | None = None,
        *,
        model: str = DEFAULT_MODEL,
        transcription_model: str = TRANSCRIPTION_MODEL,
    ) -> None:
        self.openai_client = (
            openai.AsyncClient() if openai_client is None else openai_client
        )
        self.model = model
        self.transcription_model = transcription_model
        # ingredient name -> grocery category slug
        self.category_cache: dict[str, str] = {}

    async def qa(self, q: str, *, system: str | None = None) -> str:
        return await quick_chat(
            q, openai_client=self.openai_client, model=self.model, system=system
        )

    async def transcribe(self, audio: tuple[str, bytes]) -> str:
        transcript = await transcript_from_audio(
            audio, openai_client=self.openai_client, model=self.transcription_model
        )
        if not transcript:
            raise NoSpeech("Geen spraak gedetecteerd")
        logger.info("Transcribed %d characters", len(transcript))
        return transcript

    async def chat_reply(self, message: str, history: Iterable[dict[str, Any]] = ()) -> str:
        system_message: ChatCompletionSystemMessageParam = {
            "role": "system",
            "content": INSPIRATION_PROMPT,
        }
        messages: list[ChatCompletionMessageParam] = [system_message]
        for entry in history:
            content = str(entry.get("message") or "")
            if entry.get("type") == "user":
                messages.append({"role": "user", "content": content})
            else:
                messages.append({"role": "assistant", "content": content})
        messages.append({"role": "user", "content": message})

        resp = await self.openai_client.chat.completions.create(
            model=self.model,
            messages=messages,
        )
        return (resp.choices[0].message.content or "").strip()

    async def parse_recipe(self, message: str) -> dict[str, Any]:
        ans = await self.qa(f"BERICHT OM TE PARSEREN:\n{message}", system=PARSE_RECIPE_PROMPT)
        recipe = normalise_recipe(extract_json(ans))
        logger.info("Parsed recipe %r", recipe["title"])
        return recipe

    async def recipe_from_audio(self, audio: tuple[str, bytes]) -> tuple[dict[str, Any], str]:
        transcript = await self.transcribe(audio)
        ans = await self.qa(transcript, system=RECIPE_FROM_TRANSCRIPT_PROMPT)
        return normalise_recipe(extract_json(ans)), transcript

    async def recipe_from_webpage(self, text: str, url: str) -> dict[str, Any]:
        ans = await self.qa(
            f"Extract recipe information from this webpage content ({url}):\n\n{text}",
            system=WEBPAGE_RECIPE_PROMPT,
        )
        return normalise_recipe(extract_json(ans))

    async def grocery_items_from_text(self, text: str) -> list[dict[str, str]]:
        ans = await self.qa(f"TEKST:\n{text}", system=GROCERY_TEXT_PROMPT)
        return normalise_grocery_items(extract_json(ans, array=True))

    async def grocery_items_from_audio(self, audio: tuple[str, bytes]) -> list[dict[str, str]]:
        transcript = await self.transcribe(audio)
        data = extract_json(await self.qa(transcript, system=GROCERY_TRANSCRIPT_PROMPT))
        if isinstance(data, dict) and data.get("error") == "no_speech":
            raise NoSpeech(data.get("message") or "Geen spraak gedetecteerd")
        items = normalise_grocery_items(data)
        if not items:
            raise NoSpeech("Geen items gevonden in de opname")
        return items

    async def categorize_ingredient(self, name: str, slugs: Iterable[str]) -> str:
        """Grocery category slug for `name`, one of `slugs` or "overige"."""
        key = name.strip().lower()
        if not key:
            return FALLBACK_CATEGORY
        if key in self.category_cache:
            return self.category_cache[key]

        slugs = list(slugs) or list(CATEGORY_INFO)
        descriptions = "\n".join(f'- "{s}": {CATEGORY_INFO.get(s, s)}' for s in slugs)
        try:
            ans = await self.qa(CATEGORIZE_PROMPT.format(categories=descriptions, ingredient=name))
        except openai.OpenAIError:
            logger.exception("Categorizing %r failed", name)
            return FALLBACK_CATEGORY

        slug = ans.strip().strip("'\"").lower()
        if slug not in slugs:
            logger.warning("Invalid category %r for %r, using %s", slug, name, FALLBACK_CATEGORY)
            slug = FALLBACK_CATEGORY
        self.category_cache[key] = slug
        return slug
