"""Slug generation and collision-safe allocation.

Learn: Slugs are unique per scope (company for workspaces and apps, app for
tables). Allocation first probes which of `name`, `name-1`, `name-2`, ... are
taken and picks the first free one — that is just a shortcut. The unique
constraint is what decides: each insert runs in a SAVEPOINT, and if a
concurrent request took the slug first, we roll back to the savepoint and
try the next candidate, a bounded number of times.
"""

import re
from itertools import count
from typing import Callable, Iterator, Optional, TypeVar

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.config import settings
from tenantry.errors import Conflict, ValidationError

logger = structlog.get_logger()

T = TypeVar("T")


def generate_slug(text: str) -> str:
    """URL-friendly slug: lower-case, hyphen-separated, no punctuation."""
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug


def slug_candidates(base: str) -> Iterator[str]:
    """name, name-1, name-2, ..."""
    yield base
    for n in count(1):
        yield f"{base}-{n}"


async def taken_slugs(db: AsyncSession, slug_column, scope_column, scope_value, base: str) -> set[str]:
    query = select(slug_column).where(
        or_(slug_column == base, slug_column.like(f"{base}-%"))
    )
    if scope_column is not None:
        query = query.where(scope_column == scope_value)
    result = await db.execute(query)
    return set(result.scalars().all())


async def insert_with_unique_slug(
    db: AsyncSession,
    model,
    build: Callable[[str], T],
    name: str,
    scope_column=None,
    scope_value=None,
    *,
    slug: Optional[str] = None,
    probe: bool = True,
    max_retries: Optional[int] = None,
) -> T:
    """Insert build(slug) with the first free slug derived from name.

    model must have a `slug` column; scope_column/scope_value restrict
    uniqueness (e.g. Workspace.company_id, company_id). Raises Conflict
    after max_retries constraint violations.
    """
    base = generate_slug(slug or name)
    if not base:
        raise ValidationError("Name must contain at least one letter or digit")

    retries = settings.slug_max_retries if max_retries is None else max_retries
    taken = (
        await taken_slugs(db, model.slug, scope_column, scope_value, base)
        if probe
        else set()
    )

    attempts = 0
    for candidate in slug_candidates(base):
        if candidate in taken:
            continue
        if attempts >= retries:
            break
        attempts += 1
        row = build(candidate)
        try:
            async with db.begin_nested():
                db.add(row)
        except IntegrityError:
            logger.info(
                "slug.collision",
                table=model.__tablename__,
                slug=candidate,
                attempt=attempts,
            )
            continue
        return row

    raise Conflict(f"Could not allocate a unique slug for '{name}'")
