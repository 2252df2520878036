from __future__ import annotations

from pydantic import BaseModel, Field


class SearchResultItem(BaseModel):
    """Single entry scraped from the index's search page."""

    name: str
    version: str
    description: str = ""
    update_time: str = ""  # ISO timestamp as published by the index
    index: int = 0  # 0-based rank on the page
    url: str | None = None


class SearchPage(BaseModel):
    items: list[SearchResultItem]
    total_pages: int = Field(default=1, ge=1)
