"""URL slug helpers for organizations and funnels."""

import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def generate_slug(name: str) -> str:
    """Lower-case, strip punctuation, join words with single dashes.

    >>> generate_slug("  Acme & Sons_Ltd ")
    'acme-sons-ltd'
    """
    slug = _NON_WORD.sub("", name.lower().strip())
    slug = _SEPARATORS.sub("-", slug)
    return slug.strip("-")


async def unique_slug(
    session: AsyncSession,
    column: Any,
    name: str,
    *criteria: Any,
    fallback: str = "untitled",
) -> str:
    """First free slug among ``base``, ``base-1``, ``base-2``, ...

    ``column`` is the mapped slug attribute; ``criteria`` narrow the
    uniqueness scope (e.g. the owning organization).
    """
    base = generate_slug(name) or fallback
    slug = base
    counter = 1
    while True:
        stmt = select(column).where(column == slug, *criteria).limit(1)
        if (await session.execute(stmt)).first() is None:
            return slug
        slug = f"{base}-{counter}"
        counter += 1
