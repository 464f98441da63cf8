"""Campus news feed."""
from fastapi import APIRouter, Query

from acetrack.api.deps import CurrentUser, SuperAdmin
from acetrack.models.news import NewsResponse
from acetrack.services.news import get_news, refresh_news

router = APIRouter()


@router.get("", response_model=NewsResponse)
async def list_news(user: CurrentUser, refresh: bool = Query(False)):
    return await get_news(refresh=refresh)


@router.post("/refresh", response_model=NewsResponse)
async def force_refresh(session: SuperAdmin):
    return await refresh_news()
