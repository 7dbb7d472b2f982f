"""Site-wide SEO metadata, stored as a single row and mirrored in memory."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

log = structlog.get_logger()

CONFIG_KEY = "site"


class SeoConfig(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str
    keywords: str
    author: str = Field(..., max_length=200)
    support_link: str | None = Field(None, max_length=500)


DEFAULT_SEO = SeoConfig(
    title="Character Studio AI",
    description=(
        "Generate and edit professional character design sheets with "
        "generative image models."
    ),
    keywords="AI, Character Design, 3D Art, Toy Design, Brand Sheet",
    author="Character Studio AI",
)

# Last value read from or written to the store.
_cached: SeoConfig | None = None


def cached_seo() -> SeoConfig:
    """Last known config without touching the store."""
    return _cached or DEFAULT_SEO


async def get_seo(db: AsyncSession) -> SeoConfig:
    """Read the singleton, falling back to the cached value on store errors."""
    global _cached
    try:
        result = await db.execute(
            text(
                "SELECT title, description, keywords, author, support_link "
                "FROM site_config WHERE config_key = :key"
            ),
            {"key": CONFIG_KEY},
        )
        row = result.mappings().first()
    except SQLAlchemyError as exc:
        log.warning("seo_read_failed", error=str(exc))
        await db.rollback()
        return cached_seo()

    _cached = SeoConfig.model_validate(dict(row)) if row is not None else DEFAULT_SEO
    return _cached


async def save_seo(db: AsyncSession, config: SeoConfig) -> SeoConfig:
    """Upsert the singleton and refresh the in-memory mirror."""
    global _cached
    await db.execute(
        text(
            "INSERT INTO site_config "
            "(config_key, title, description, keywords, author, support_link, updated_at) "
            "VALUES (:key, :title, :description, :keywords, :author, :support_link, :now) "
            "ON CONFLICT (config_key) DO UPDATE SET "
            "title = EXCLUDED.title, description = EXCLUDED.description, "
            "keywords = EXCLUDED.keywords, author = EXCLUDED.author, "
            "support_link = EXCLUDED.support_link, updated_at = EXCLUDED.updated_at"
        ),
        {**config.model_dump(), "key": CONFIG_KEY, "now": datetime.now(timezone.utc)},
    )
    await db.commit()
    _cached = config
    return config
