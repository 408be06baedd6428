"""Evidence snippets anchoring each intent back to the pages it came from."""
from __future__ import annotations

from loguru import logger

from intentspace.schemas import Evidence, Intent, Page
from intentspace.utils.helpers import truncate_text

PAGES_PER_INTENT = 3
SNIPPET_CHARS = 200


def build_evidence(
    intents: list[Intent],
    pages: list[Page],
    pages_per_intent: int = PAGES_PER_INTENT,
    snippet_chars: int = SNIPPET_CHARS,
) -> list[Evidence]:
    """One Evidence per source URL, for the first `pages_per_intent` URLs of each intent."""
    by_url = {}
    for page in pages:
        by_url.setdefault(page.url, page)

    records: list[Evidence] = []
    for intent in intents:
        for url in intent.source_urls[:pages_per_intent]:
            page = by_url.get(url)
            if page is None:
                continue
            records.append(
                Evidence(
                    intent_id=intent.id,
                    page_id=page.id,
                    url=page.url,
                    page_title=page.title,
                    snippet=truncate_text(page.extracted_text, snippet_chars),
                )
            )

    logger.debug(f"[Evidence] {len(records)} record(s) for {len(intents)} intent(s)")
    return records
