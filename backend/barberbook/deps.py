from datetime import date, datetime
from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.policy import ShopPolicy
from .utils.time import shop_now, shop_today


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_policy(settings: Settings = Depends(get_settings)) -> ShopPolicy:
    return settings.policy()


def get_today(settings: Settings = Depends(get_settings)) -> date:
    return shop_today(settings.shop_timezone)


def get_now(settings: Settings = Depends(get_settings)) -> datetime:
    return shop_now(settings.shop_timezone)
