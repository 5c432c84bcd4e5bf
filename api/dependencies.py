"""
FastAPI dependencies
"""

from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped database session"""
    async with async_session_maker() as session:
        yield session


def get_scheduler(request: Request):
    """The FCCImportScheduler owned by the running app"""
    return request.app.state.scheduler


def get_progress_store(request: Request):
    return request.app.state.scheduler.progress


def get_runner(request: Request):
    return request.app.state.scheduler.runner
