import json
import logging
import re
from urllib.parse import urlparse

import bs4
import httpx


logger = logging.getLogger(__name__)


MAX_PAGE_CHARS = 300_000

KNOWN_SITES = {
    "dagelijksekost": "Dagelijkse kost",
    "libelle-lekker": "Libelle Lekker",
    "njam": "njam!",
}


LOGIN_PATTERNS = (
    re.compile(r"\b(inloggen|login|log in)\b.*\b(registreer|register|sign up)\b", re.I),
    re.compile(r"\bmeld je aan\b", re.I),
    re.compile(r"\bje moet inloggen\b", re.I),
)
MIN_PAGE_CHARS = 500


class LoginRequired(Exception):
    pass


def source_from_url(url: str) -> str:
    domain = urlparse(url).hostname or ""
    for part, name in KNOWN_SITES.items():
        if part in domain:
            return name
    return domain.removeprefix("www.")


def author_from_soup(soup: bs4.BeautifulSoup) -> str | None:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.get_text())
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict) or data.get("@type") != "Recipe":
            continue
        author = data.get("author")
        if isinstance(author, dict) and author.get("name"):
            return str(author["name"])
    return None


async def text_from_webpage(
    url: str,
    *,
    http_client: httpx.AsyncClient,
) -> tuple[str, str]:
    """Visible text of the page and the name of its source."""
    resp = await http_client.get(url)
    resp.raise_for_status()

    soup = bs4.BeautifulSoup(resp.text, features="html.parser")
    source = author_from_soup(soup) or source_from_url(url)
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    body = soup.body or soup
    text = body.get_text(" ", strip=True)
    if len(text) < MIN_PAGE_CHARS or any(p.search(text) for p in LOGIN_PATTERNS):
        raise LoginRequired(f"Login required for {url}")
    logger.info("Fetched %d characters from %s", len(text), url)
    return text[:MAX_PAGE_CHARS], source
