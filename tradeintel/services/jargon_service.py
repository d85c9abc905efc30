"""Jargon expansion before extraction and auto-learning of unknown terms."""

import logging
import re

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.models.lookup import JargonEntry
from tradeintel.services.lookup_cache import JargonSnapshot

logger = logging.getLogger(__name__)


def expand_jargon(text: str, jargon: JargonSnapshot) -> str:
    """Replace each known acronym with "Expansion (ACRONYM)".

    Matching is case-insensitive on word boundaries and keeps the original
    spelling in parentheses. Longer acronyms are applied first.
    """
    if not text or not jargon.entries:
        return text

    expanded = text
    for acronym, expansion in jargon.entries:
        pattern = re.compile(r"(?<!\w)" + re.escape(acronym) + r"(?!\w)", re.IGNORECASE)
        # Skip occurrences already expanded by a longer entry
        expanded = pattern.sub(
            lambda m: m.group(0) if _already_expanded(m) else f"{expansion} ({m.group(0)})",
            expanded,
        )
    return expanded


def _already_expanded(match: re.Match) -> bool:
    before = match.string[: match.start()]
    after = match.string[match.end():]
    return before.endswith("(") and after.startswith(")")


async def learn_new_terms(db: AsyncSession, terms: list[str]) -> list[JargonEntry]:
    """Queue unknown terms for admin review.

    Existing entries (case-insensitive) get their usage count bumped; new
    ones are stored unverified with the term itself as a placeholder expansion.
    Returns the newly created entries.
    """
    created: list[JargonEntry] = []
    seen: set[str] = set()
    for term in terms:
        acronym = (term or "").strip()
        if not acronym or acronym.lower() in seen:
            continue
        seen.add(acronym.lower())

        result = await db.execute(
            select(JargonEntry).where(func.lower(JargonEntry.acronym) == acronym.lower())
        )
        entry = result.scalar_one_or_none()
        if entry:
            entry.usage_count = entry.usage_count + 1
            continue

        entry = JargonEntry(
            acronym=acronym,
            expansion=acronym,
            source="llm",
            confidence=0.5,
            usage_count=1,
            verified=False,
        )
        db.add(entry)
        created.append(entry)
        logger.info("Queued new jargon term for review: %s", acronym)

    await db.flush()
    return created
