"""API v1 router configuration."""

from fastapi import APIRouter

from chat_backend.api.v1.endpoints import messages

router = APIRouter(prefix="/api/v1")

router.include_router(messages.router, prefix="/messages", tags=["messages"])
