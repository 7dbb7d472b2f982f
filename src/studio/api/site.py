"""Public site metadata."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from studio.database import get_db
from studio.services.site_config_service import SeoConfig, get_seo

router = APIRouter(prefix="/api/v1/site", tags=["site"])


@router.get("/seo", response_model=SeoConfig)
async def read_seo(db: AsyncSession = Depends(get_db)):
    """Return the SEO metadata every page applies on load."""
    return await get_seo(db)
