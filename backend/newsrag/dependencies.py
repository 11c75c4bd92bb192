"""FastAPI dependency injection utilities."""
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from newsrag.services.chat_service import ChatService
from newsrag.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_db(services: Services = Depends(get_services)) -> AsyncGenerator[AsyncSession, None]:
    async with services.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_chat_service(services: Services = Depends(get_services)) -> ChatService:
    return services.chat
