"""Scraped campus news, cached in MongoDB."""
from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class NewsItem(Document):
    news_id: Indexed(str, unique=True)  # hash of title + date
    title: str
    summary: str = ""
    image_url: Optional[str] = None
    date: str = ""
    author: str = ""
    read_more_url: str = ""
    scraped_at: Indexed(datetime)
    is_active: bool = True

    class Settings:
        name = "news_items"
        use_state_management = True


class NewsOut(BaseModel):
    id: str
    title: str
    summary: str
    image_url: Optional[str] = None
    date: str
    author: str
    read_more_url: str
    scraped_at: datetime


class NewsResponse(BaseModel):
    success: bool = True
    data: list[NewsOut] = Field(default_factory=list)
    cached: bool = False
    stale: bool = False
    last_updated: Optional[datetime] = None
    cache_age: Optional[int] = None  # seconds
    fetch_error: Optional[str] = None
    inserted: Optional[int] = None
    updated: Optional[int] = None
