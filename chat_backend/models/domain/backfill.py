"""Pydantic schemas for the embedding backfill API."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Accepts and emits camelCase keys, matching the chat UI's payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BackfillRequest(_CamelModel):
    """Request body for running a backfill."""

    batch_size: int | None = Field(
        None, ge=1, description="Texts per provider call (defaults from settings)"
    )
    limit: int | None = Field(
        None, ge=1, description="Maximum number of pending messages to consider"
    )


class BackfillResponse(_CamelModel):
    """Aggregate result of a backfill run."""

    message: str
    processed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    errors: int = Field(0, ge=0)
    error_details: list[str] | None = None


class BackfillStatsResponse(_CamelModel):
    """Snapshot of how many messages still lack an embedding."""

    without_embeddings: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    with_embeddings: int = Field(..., ge=0)


class BackfillJobResponse(_CamelModel):
    """Acknowledgement for a queued backfill job."""

    job_id: str
    status: str = "queued"
