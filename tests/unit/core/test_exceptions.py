"""Tests for problem-detail exceptions and handlers."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat_backend.core.exceptions import (
    AppError,
    NotFoundError,
    StorageError,
    UpstreamError,
    ValidationError,
    setup_exception_handlers,
)


class TestAppError:
    """Tests for the base AppError."""

    def test_problem_detail(self) -> None:
        """Test conversion to RFC 7807 format."""
        error = AppError(
            title="Embedding Mismatch",
            detail="2 messages, 1 embeddings",
            error_type="about:blank#embedding-mismatch",
            instance="/api/v1/messages/backfill",
        )

        assert error.to_problem_detail() == {
            "type": "about:blank#embedding-mismatch",
            "title": "Embedding Mismatch",
            "status": 500,
            "detail": "2 messages, 1 embeddings",
            "instance": "/api/v1/messages/backfill",
        }

    def test_default_type(self) -> None:
        """Test the type falls back to the status code."""
        error = AppError(title="Teapot", detail="short and stout", status_code=418)
        assert error.error_type == "about:blank#418"
        assert str(error) == "short and stout"


class TestSubclasses:
    """Tests for the concrete error types."""

    def test_not_found_with_id(self) -> None:
        error = NotFoundError(resource="Message", resource_id="abc")
        assert error.status_code == 404
        assert error.detail == "Message with id 'abc' not found"

    def test_validation_error(self) -> None:
        error = ValidationError(detail="batch_size must be at least 1")
        problem = error.to_problem_detail()
        assert problem["status"] == 422
        assert problem["errors"] == []

    def test_storage_error(self) -> None:
        """Test storage failures are 503 and name the operation."""
        problem = StorageError("connection refused", operation="update_embedding").to_problem_detail()
        assert problem["status"] == 503
        assert problem["title"] == "Storage Unavailable"
        assert problem["operation"] == "update_embedding"

    def test_storage_error_without_operation(self) -> None:
        assert "operation" not in StorageError("down").to_problem_detail()

    def test_upstream_error(self) -> None:
        """Test provider failures are 502 with a retryable flag."""
        problem = UpstreamError("rate limited", retryable=True).to_problem_detail()
        assert problem["status"] == 502
        assert problem["retryable"] is True


class TestExceptionHandlers:
    """Tests for registered handlers."""

    def _client(self) -> TestClient:
        app = FastAPI()
        setup_exception_handlers(app)

        @app.get("/storage")
        async def storage() -> None:
            raise StorageError("db down", operation="select")

        @app.get("/boom")
        async def boom() -> None:
            raise RuntimeError("unexpected")

        return TestClient(app, raise_server_exceptions=False)

    def test_app_error_handler(self) -> None:
        """Test AppErrors are returned as problem+json."""
        response = self._client().get("/storage")

        assert response.status_code == 503
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["detail"] == "db down"

    def test_generic_handler_hides_details(self) -> None:
        """Test unexpected errors don't leak their message."""
        response = self._client().get("/boom")

        assert response.status_code == 500
        assert response.json()["detail"] == "An unexpected error occurred"
