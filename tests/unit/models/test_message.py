"""Tests for Message model and schemas."""

import uuid
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from chat_backend.models.db.message import EMBEDDING_DIMENSION, Message
from chat_backend.models.domain.backfill import (
    BackfillJobResponse,
    BackfillRequest,
    BackfillResponse,
    BackfillStatsResponse,
)
from chat_backend.models.domain.message import (
    CommentTaskProposal,
    CreateTaskProposal,
    MessageCreate,
    MessageRead,
    SearchResult,
    UpdateTaskProposal,
    dump_attachment,
)


def base_fields() -> dict[str, object]:
    return {
        "conversation_id": str(uuid.uuid4()),
        "author_id": str(uuid.uuid4()),
        "content": "hello",
    }


class TestMessageModel:
    """Tests for the Message database model."""

    def test_creates_pending_message(self) -> None:
        """Test a message starts without an embedding."""
        message = Message(
            conversation_id=uuid.uuid4(),
            author_id=uuid.uuid4(),
            content="hello",
        )

        assert message.embedding is None
        assert message.has_embedding is False

    def test_creates_message_with_embedding(self) -> None:
        message = Message(
            conversation_id=uuid.uuid4(),
            author_id=uuid.uuid4(),
            content="hello",
            embedding=[0.1] * EMBEDDING_DIMENSION,
        )

        assert message.has_embedding is True
        assert len(message.embedding) == 1536  # type: ignore[arg-type]

    def test_table_indexes(self) -> None:
        """Test the pending-row and similarity indexes are declared."""
        index_names = {index.name for index in Message.__table__.indexes}

        assert "ix_messages_pending_created" in index_names
        assert "ix_messages_embedding_cosine" in index_names
        assert "ix_messages_conversation_created" in index_names


class TestMessageCreate:
    """Tests for the MessageCreate schema."""

    def test_minimal(self) -> None:
        data = MessageCreate.model_validate(base_fields())
        assert data.is_ai is False
        assert data.task_proposal is None

    def test_rejects_missing_author(self) -> None:
        fields = base_fields()
        del fields["author_id"]

        with pytest.raises(ValidationError):
            MessageCreate.model_validate(fields)

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_rejects_blank_content(self, content: str) -> None:
        with pytest.raises(ValidationError):
            MessageCreate.model_validate({**base_fields(), "content": content})


class TestTaskProposal:
    """Tests for the task proposal variants."""

    @pytest.mark.parametrize(
        ("payload", "expected_type"),
        [
            ({"action": "create", "summary": "New task"}, CreateTaskProposal),
            ({"action": "update", "task_id": "t-1", "summary": "Rename"}, UpdateTaskProposal),
            ({"action": "comment", "task_id": "t-1", "summary": "Note"}, CommentTaskProposal),
        ],
    )
    def test_selects_variant_by_action(
        self, payload: dict[str, str], expected_type: type
    ) -> None:
        """Test the action field picks the proposal variant."""
        data = MessageCreate.model_validate({**base_fields(), "task_proposal": payload})
        assert isinstance(data.task_proposal, expected_type)

    def test_update_requires_task_id(self) -> None:
        with pytest.raises(ValidationError):
            MessageCreate.model_validate(
                {**base_fields(), "task_proposal": {"action": "update", "summary": "x"}}
            )

    def test_create_task_id_optional(self) -> None:
        proposal = CreateTaskProposal(summary="New task")
        assert proposal.task_id is None
        assert proposal.confirmed is False
        assert proposal.rejected is False

    @pytest.mark.parametrize("action", ["create", "update", "comment"])
    def test_accepts_camel_case_task_id(self, action: str) -> None:
        """Test the chat client's taskId key is kept for every variant."""
        data = MessageCreate.model_validate(
            {
                **base_fields(),
                "task_proposal": {
                    "taskId": "T-42",
                    "action": action,
                    "summary": "Ship it",
                    "details": "Before Friday",
                },
            }
        )

        assert data.task_proposal is not None
        assert data.task_proposal.task_id == "T-42"
        assert dump_attachment(data.task_proposal)["task_id"] == "T-42"  # type: ignore[index]

    def test_unknown_action(self) -> None:
        with pytest.raises(ValidationError):
            MessageCreate.model_validate(
                {**base_fields(), "task_proposal": {"action": "delete", "summary": "x"}}
            )


class TestSearchResult:
    """Tests for search result attachments."""

    def test_references_default_empty(self) -> None:
        result = SearchResult(query="launch date", summary="No matches")
        assert result.references == []

    def test_dump_attachment(self) -> None:
        """Test attachments serialize to JSON-compatible dicts."""
        message_id = uuid.uuid4()
        result = SearchResult.model_validate(
            {
                "query": "launch date",
                "summary": "Mentioned once",
                "references": [
                    {
                        "date": "2024-03-01",
                        "participant": "Ana",
                        "snippet": "we launch in May",
                        "message_id": str(message_id),
                    }
                ],
            }
        )

        dumped = dump_attachment(result)

        assert dumped is not None
        assert dumped["references"][0]["message_id"] == str(message_id)
        assert dump_attachment(None) is None

    def test_accepts_camel_case_references(self) -> None:
        """Test reference ids sent in camelCase are kept."""
        conversation_id = uuid.uuid4()
        message_id = uuid.uuid4()

        result = SearchResult.model_validate(
            {
                "query": "launch date",
                "summary": "Mentioned once",
                "references": [
                    {
                        "date": "2024-03-01",
                        "participant": "Ana",
                        "snippet": "we launch in May",
                        "conversationId": str(conversation_id),
                        "messageId": str(message_id),
                        "conversationName": "Launch planning",
                    }
                ],
            }
        )

        reference = result.references[0]
        assert reference.conversation_id == conversation_id
        assert reference.message_id == message_id
        assert reference.conversation_name == "Launch planning"


class TestMessageRead:
    """Tests for the MessageRead schema."""

    def test_from_model(self) -> None:
        """Test reading a model exposes has_embedding, not the vector."""
        now = datetime.now(UTC)
        message = Message(
            id=uuid.uuid4(),
            conversation_id=uuid.uuid4(),
            author_id=uuid.uuid4(),
            content="hello",
            is_ai=True,
            task_proposal={"action": "comment", "task_id": "t-9", "summary": "Note"},
            embedding=[0.0] * EMBEDDING_DIMENSION,
            created_at=now,
            updated_at=now,
        )

        read = MessageRead.model_validate(message)

        assert read.has_embedding is True
        assert isinstance(read.task_proposal, CommentTaskProposal)
        assert "embedding" not in read.model_dump()


class TestBackfillSchemas:
    """Tests for the camelCase backfill schemas."""

    def test_request_accepts_camel_case(self) -> None:
        request = BackfillRequest.model_validate({"batchSize": 5, "limit": 20})
        assert request.batch_size == 5
        assert request.limit == 20

    def test_request_rejects_zero(self) -> None:
        with pytest.raises(ValidationError):
            BackfillRequest.model_validate({"batchSize": 0})

    def test_response_dumps_camel_case(self) -> None:
        response = BackfillResponse(
            message="Backfill completed",
            processed=1,
            total=2,
            errors=1,
            error_details=["Message x: write failed"],
        )

        assert response.model_dump(by_alias=True) == {
            "message": "Backfill completed",
            "processed": 1,
            "total": 2,
            "errors": 1,
            "errorDetails": ["Message x: write failed"],
        }

    def test_stats_from_camel_case(self) -> None:
        stats = BackfillStatsResponse.model_validate(
            {"withoutEmbeddings": 30, "total": 100, "withEmbeddings": 70}
        )
        assert stats.with_embeddings == 70

    def test_job_response(self) -> None:
        assert BackfillJobResponse(job_id="abc").model_dump(by_alias=True) == {
            "jobId": "abc",
            "status": "queued",
        }
