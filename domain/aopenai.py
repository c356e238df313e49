import os

import openai
from openai.types.chat import ChatCompletionMessageParam


DEFAULT_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
TRANSCRIPTION_MODEL = "whisper-1"


async def quick_chat(
    msg: str,
    *,
    openai_client: openai.AsyncClient | None = None,
    model: str | None = None,
    system: str | None = None,
) -> str:
    openai_client = openai.AsyncClient() if openai_client is None else openai_client
    model = DEFAULT_MODEL if model is None else model
    messages: list[ChatCompletionMessageParam] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": msg})
    resp = await openai_client.chat.completions.create(
        model=model,
        messages=messages,
    )
    ans = resp.choices[0].message.content or ""
    return ans.strip()


async def transcript_from_audio(
    audio: tuple[str, bytes],
    *,
    openai_client: openai.AsyncClient,
    model: str = TRANSCRIPTION_MODEL,
) -> str:
    """`audio` is a `(filename, content)` pair; the extension tells the API the format."""
    resp = await openai_client.audio.transcriptions.create(
        file=audio,
        model=model,
        language="nl",
    )
    return resp.text.strip()
