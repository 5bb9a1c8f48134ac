"""Messages API endpoints, including embedding backfill."""

import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Response, status
from starlette.concurrency import run_in_threadpool

from chat_backend.core.database import DbSession
from chat_backend.core.exceptions import AppError, UpstreamError
from chat_backend.models.domain.backfill import (
    BackfillJobResponse,
    BackfillRequest,
    BackfillResponse,
    BackfillStatsResponse,
)
from chat_backend.models.domain.message import MessageCreate, MessageList, MessageRead
from chat_backend.services.backfill_service import (
    BackfillService,
    BackfillValidationError,
)
from chat_backend.services.embedding_client import ProviderError
from chat_backend.services.message_service import MessageService
from chat_backend.workers.backfill_worker import queue_backfill

router = APIRouter()


async def get_message_service(session: DbSession) -> AsyncGenerator[MessageService, None]:
    """Get message service instance, closing its provider client afterwards."""
    service = MessageService(session)
    try:
        yield service
    finally:
        await service.close()


async def get_backfill_service(session: DbSession) -> AsyncGenerator[BackfillService, None]:
    """Get backfill service instance, closing its provider client afterwards."""
    service = BackfillService(session)
    try:
        yield service
    finally:
        await service.close()


def get_backfill_queuer() -> Callable[..., str]:
    """Get the function that enqueues background backfill jobs."""
    return queue_backfill


MessageSvc = Annotated[MessageService, Depends(get_message_service)]
BackfillSvc = Annotated[BackfillService, Depends(get_backfill_service)]
BackfillQueuer = Annotated[Callable[..., str], Depends(get_backfill_queuer)]


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def create_message(request: MessageCreate, service: MessageSvc) -> MessageRead:
    """Create a message.

    An embedding is generated for the content when the provider is
    available. If it isn't, the message is still created and will be
    picked up by the next backfill.
    """
    return await service.create_message(request)


@router.get("", response_model=MessageList)
async def list_messages(
    service: MessageSvc,
    conversation_id: Annotated[
        uuid.UUID | None, Query(description="Filter by conversation")
    ] = None,
    author_id: Annotated[uuid.UUID | None, Query(description="Filter by author")] = None,
) -> MessageList:
    """List messages, newest first."""
    return await service.list_messages(
        conversation_id=conversation_id,
        author_id=author_id,
    )


@router.post(
    "/backfill",
    response_model=BackfillResponse,
    response_model_exclude_none=True,
)
async def run_backfill(
    service: BackfillSvc,
    request: Annotated[BackfillRequest | None, Body()] = None,
) -> BackfillResponse:
    """Add embeddings to existing messages that don't have them.

    Pending messages are processed oldest first. A provider failure aborts
    the whole run without saving anything; a failed save only affects its
    own message and is listed in ``errorDetails``.
    """
    request = request or BackfillRequest()
    try:
        report = await service.run_backfill(
            batch_size=request.batch_size,
            limit=request.limit,
        )
    except ProviderError as e:
        raise UpstreamError(detail=str(e), retryable=e.is_retryable) from e
    except BackfillValidationError as e:
        raise AppError(
            title="Embedding Mismatch",
            detail=str(e),
            error_type="about:blank#embedding-mismatch",
        ) from e

    return BackfillResponse.model_validate(report.to_dict())


@router.get("/backfill", response_model=BackfillStatsResponse)
async def get_backfill_stats(service: BackfillSvc) -> BackfillStatsResponse:
    """Get statistics about messages needing backfill."""
    stats = await service.get_stats()
    return BackfillStatsResponse.model_validate(stats.to_dict())


@router.post(
    "/backfill/jobs",
    response_model=BackfillJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def enqueue_backfill(
    queuer: BackfillQueuer,
    request: Annotated[BackfillRequest | None, Body()] = None,
) -> BackfillJobResponse:
    """Queue a backfill to run in a background worker."""
    request = request or BackfillRequest()
    job_id = await run_in_threadpool(
        queuer, batch_size=request.batch_size, limit=request.limit
    )
    return BackfillJobResponse(job_id=job_id)


@router.get("/{message_id}", response_model=MessageRead)
async def get_message(message_id: uuid.UUID, service: MessageSvc) -> MessageRead:
    """Get a message by ID."""
    return await service.get_message(message_id)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(message_id: uuid.UUID, service: MessageSvc) -> Response:
    """Delete a message."""
    await service.delete_message(message_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
