"""Tests for exceptions.py - hierarchy, serialization and retry classification."""

from publication_search.core.exceptions import (
    APIError,
    CatastrophicFailureError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidParameterError,
    InvalidQueryError,
    MalformedRecordError,
    NetworkError,
    PublicationSearchError,
    RateLimitError,
    SourceUnavailableError,
    ValidationError,
    is_retryable_error,
)


class TestPublicationSearchError:
    def test_basic_creation(self):
        e = PublicationSearchError("test error")
        assert str(e) == "test error"
        assert e.severity == ErrorSeverity.ERROR
        assert e.category == ErrorCategory.API
        assert e.retryable is False

    def test_to_dict_minimal(self):
        assert PublicationSearchError("fail").to_dict() == {
            "error": "fail",
            "category": "api",
            "severity": "error",
            "retryable": False,
        }

    def test_to_dict_with_context(self):
        ctx = ErrorContext(source="OpenAlex", suggestion="try again", retry_after=5.0)
        d = PublicationSearchError("fail", context=ctx, retryable=True).to_dict()
        assert d["source"] == "OpenAlex"
        assert d["suggestion"] == "try again"
        assert d["retry_after_seconds"] == 5.0
        assert d["retryable"] is True

    def test_to_agent_message(self):
        ctx = ErrorContext(suggestion="fix it", retry_after=5.0)
        msg = PublicationSearchError("fail", context=ctx, retryable=True).to_agent_message()
        assert msg.splitlines() == [
            "❌ **Error**: fail",
            "💡 **Suggestion**: fix it",
            "🔄 Retry after 5.0 seconds",
        ]

    def test_agent_message_retryable_without_delay(self):
        msg = PublicationSearchError("fail", retryable=True).to_agent_message()
        assert "This error is retryable" in msg


# ============================================================
# API errors
# ============================================================


class TestAPIErrors:
    def test_rate_limit(self):
        e = RateLimitError()
        assert isinstance(e, APIError)
        assert e.retryable
        assert e.severity == ErrorSeverity.TRANSIENT
        assert e.context.retry_after == 1.0
        assert e.context.suggestion == "Wait and retry the request"

    def test_rate_limit_keeps_given_suggestion(self):
        e = RateLimitError("slow down", retry_after=3.0, context=ErrorContext(suggestion="use an API key"))
        assert e.context.suggestion == "use an API key"
        assert e.context.retry_after == 3.0

    def test_network(self):
        e = NetworkError()
        assert e.category == ErrorCategory.NETWORK
        assert e.retryable

    def test_source_unavailable(self):
        e = SourceUnavailableError("retries exhausted", source="OpenAlex")
        assert str(e) == "OpenAlex: retries exhausted"
        assert e.source == e.context.source == "OpenAlex"
        assert e.retryable

    def test_catastrophic_failure(self):
        e = CatastrophicFailureError(["pubmed", "openalex"])
        assert str(e) == "All publication sources failed (pubmed, openalex)"
        assert e.failed_sources == ["pubmed", "openalex"]
        assert e.context.metadata["failed_sources"] == ["pubmed", "openalex"]
        assert e.to_dict()["suggestion"] == "All publication sources failed; retry shortly"

    def test_catastrophic_failure_without_sources(self):
        assert "none attempted" in str(CatastrophicFailureError([]))


# ============================================================
# Validation, data and configuration errors
# ============================================================


class TestOtherErrors:
    def test_invalid_query(self):
        e = InvalidQueryError("   ")
        assert isinstance(e, ValidationError)
        assert str(e) == "Invalid query: Query cannot be empty"
        assert e.category == ErrorCategory.VALIDATION
        assert e.severity == ErrorSeverity.WARNING
        assert not e.retryable
        assert e.context.input_value == "   "
        assert "glioblastoma" in e.context.suggestion

    def test_invalid_parameter(self):
        e = InvalidParameterError("limit", 0, "an integer between 1 and 100")
        assert str(e) == "Invalid parameter 'limit': 0 (expected an integer between 1 and 100)"
        assert e.context.suggestion == "Expected an integer between 1 and 100"
        assert e.context.input_value == 0

    def test_malformed_record(self):
        assert isinstance(MalformedRecordError("no title"), DataError)
        assert str(MalformedRecordError("no title")) == "Malformed record: no title"
        assert str(MalformedRecordError("no title", source="arXiv")) == "Malformed record (arXiv): no title"

    def test_configuration(self):
        e = ConfigurationError("bad weights")
        assert e.severity == ErrorSeverity.CRITICAL
        assert e.category == ErrorCategory.CONFIGURATION
        assert not e.retryable


# ============================================================
# Retry classification
# ============================================================


class TestIsRetryable:
    def test_library_errors_use_flag(self):
        assert is_retryable_error(RateLimitError())
        assert is_retryable_error(SourceUnavailableError(source="arXiv"))
        assert not is_retryable_error(InvalidQueryError(""))

    def test_transient_messages(self):
        assert is_retryable_error(RuntimeError("Backend failed: couldn't connect to database"))
        assert is_retryable_error(OSError("Connection reset by peer"))
        assert is_retryable_error(TimeoutError("Read timed out"))
        assert is_retryable_error(RuntimeError("HTTP Error 500: Internal Server Error"))

    def test_permanent_messages(self):
        assert not is_retryable_error(RuntimeError("Invalid query syntax"))
        assert not is_retryable_error(ValueError("bad XML"))
