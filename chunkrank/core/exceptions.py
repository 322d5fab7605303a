"""
Centralized Exception Hierarchy for chunkrank.

This module defines all custom exceptions used throughout chunkrank.
All exceptions inherit from ChunkRankError for easy catching.

Helpful Error Messages
----------------------
Each exception includes:
- user_message: Human-readable description of what went wrong
- why_it_happened: Explanation of the root cause
- how_to_fix: Actionable steps to resolve the issue
- error_code: Unique identifier for documentation lookup (e.g., "CR-SRCH-001")

Search errors additionally expose a machine-readable ``kind`` and a
``context`` dict (counts, first offending ids) so a failure can be
diagnosed without re-running it.

Usage
-----
    from chunkrank.core.exceptions import (
        ChunkRankError,
        SearchError,
        InvalidEmbeddingsError,
    )

    try:
        orchestrator.search(query, chunks)
    except InvalidEmbeddingsError as e:
        logger.error(f"Bad embeddings: {e.offending_ids}")
    except SearchError as e:
        logger.error(f"Search failed ({e.kind}): {e}")

Exception Hierarchy
-------------------
    ChunkRankError (base)
    ├── SearchError
    │   ├── EmptyQueryError
    │   ├── NoChunksError
    │   ├── InvalidSearchModeError
    │   ├── InvalidEmbeddingsError
    │   ├── NoSearchDataError
    │   ├── MissingCollectionIdError
    │   ├── EnrichmentUnavailableError
    │   ├── CollaboratorFailureError
    │   └── SearchCancelledError
    └── ValidationError
        └── ConfigValidationError

Design Principles
-----------------
1. All exceptions inherit from ChunkRankError
2. Validation errors are raised before any pipeline stage runs
3. Collaborator errors are wrapped once and chained with ``from``
4. The engine never retries; the caller owns retry policy
"""

import re
from typing import Any, Dict, List, Optional, Sequence


def sanitize_message(message: str) -> str:
    """Sanitize an error message to avoid leaking sensitive info.

    Removes or masks API keys, bearer tokens, credentials in URLs
    and user home directories.

    Args:
        message: Original error message

    Returns:
        Sanitized message with sensitive info replaced
    """
    if not message:
        return message

    patterns = [
        # API keys (various formats)
        (r"(sk-|pk-|api_key[=:][\s]*)[a-zA-Z0-9_-]{20,}", r"\1<api-key>"),
        (r"([A-Z_]*API_KEY)[=:]\s*[^\s]+", r"\1=<hidden>"),
        # Bearer tokens
        (r"Bearer\s+[a-zA-Z0-9_.-]+", r"Bearer <token>"),
        # Basic auth
        (r"://[^:/\s]+:[^@\s]+@", r"://<user>:<pass>@"),
        # Home directories
        (r"[A-Za-z]:\\Users\\[^\\\s]+", r"<user-home>"),
        (r"/(?:home|Users)/[^/\s]+", r"<user-home>"),
    ]

    result = message
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)

    return result


def get_root_cause(exc: BaseException) -> BaseException:
    """Extract the root cause from a chain of exceptions.

    Follows nested __cause__ and __context__ attributes to find
    the original error that started the chain.

    Args:
        exc: Exception to analyze

    Returns:
        Root cause exception (may be the same as input)
    """
    seen = set()
    current = exc

    while current is not None:
        # Avoid infinite loops
        if id(current) in seen:
            break
        seen.add(id(current))

        # Prefer explicit cause over implicit context
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__context__ is not None:
            current = current.__context__
        else:
            break

    return current


class ChunkRankError(Exception):
    """
    Base exception for all chunkrank errors.

    All custom exceptions in chunkrank inherit from this class,
    making it easy to catch any chunkrank-specific error.

    Includes helpful error information:
    - error_code: Unique code for documentation lookup (e.g., "CR-ERR-001")
    - why_it_happened: Explanation of the root cause
    - how_to_fix: List of actionable suggestions

    Example
    -------
        try:
            orchestrator.search(query, chunks)
        except ChunkRankError as e:
            logger.error(f"Search failed: {e}")
            print(f"Fix: {e.how_to_fix}")
    """

    # Default error info - subclasses should override
    kind: str = "Error"
    error_code: str = "CR-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize ChunkRankError with helpful information.

        Args:
            message: Human-readable error message
            error_code: Unique identifier (e.g., "CR-SRCH-001")
            why_it_happened: Explanation of root cause
            how_to_fix: List of actionable fix suggestions
            context: Diagnostic details (counts, offending ids)
        """
        # Sanitize the message to avoid leaking sensitive info
        sanitized_message = sanitize_message(message)
        super().__init__(sanitized_message)

        # Override class defaults if provided
        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix
        self.context: Dict[str, Any] = dict(context or {})

    @property
    def user_message(self) -> str:
        """Get the user-friendly error message."""
        return str(self)

    def get_root_cause(self) -> BaseException:
        """Get the root cause of this exception chain."""
        return get_root_cause(self)

    def to_dict(self) -> Dict[str, Any]:
        """Machine-readable view of the error."""
        return {
            "kind": self.kind,
            "error_code": self.error_code,
            "message": str(self),
            "context": dict(self.context),
        }


# ============================================================================
# Search Exceptions
# ============================================================================


class SearchError(ChunkRankError):
    """
    Base exception for search failures.

    Raised when a search call cannot produce a ranked result. Validation
    failures are raised before any pipeline stage runs; collaborator
    failures abort the whole call rather than returning partial results.
    """

    kind = "SearchError"
    error_code = "CR-SRCH-000"
    why_it_happened = "The search could not be completed"
    how_to_fix = ["Check the query, the chunk set and the search options"]


class EmptyQueryError(SearchError):
    """Raised when the query text is empty or whitespace only."""

    kind = "EmptyQuery"
    error_code = "CR-SRCH-001"
    why_it_happened = "The query text is empty or contains only whitespace"
    how_to_fix = ["Provide a non-empty query string"]


class NoChunksError(SearchError):
    """Raised when the chunk set passed to a search is empty."""

    kind = "NoChunks"
    error_code = "CR-SRCH-002"
    why_it_happened = "No chunks were supplied to search over"
    how_to_fix = [
        "Load at least one collection before searching",
        "Check that the chunk source returned data",
    ]


class InvalidSearchModeError(SearchError):
    """
    Raised when the search mode is not keyword, vector or hybrid.

    Example
    -------
        orchestrator.search("dragon", chunks, SearchOptions(search_mode="fuzzy"))
        # Raises: InvalidSearchModeError("Invalid search mode: fuzzy")
    """

    kind = "InvalidSearchMode"
    error_code = "CR-SRCH-003"
    why_it_happened = "The requested search mode is not supported"
    how_to_fix = ["Use one of: keyword, vector, hybrid"]


class InvalidEmbeddingsError(SearchError):
    """
    Raised when chunk embeddings are missing or malformed.

    Issues are aggregated and reported once for the whole chunk set,
    listing up to the first ten offending chunk ids.

    Attributes
    ----------
    offending_ids : list of str
        Ids of the first offending chunks (at most 10)
    issues : list of dict
        ``{index, id, issue}`` records for the first offending chunks
    invalid_count : int
        Total number of chunks with invalid embeddings
    total_chunks : int
        Number of chunks validated
    """

    kind = "InvalidEmbeddings"
    error_code = "CR-SRCH-004"
    why_it_happened = (
        "One or more chunks have a missing, empty, non-numeric or NaN "
        "embedding, or an embedding whose dimension differs from the query"
    )
    how_to_fix = [
        "Re-vectorize the affected collection",
        "Check that every chunk was embedded with the same provider",
    ]

    def __init__(
        self,
        message: str,
        issues: Optional[Sequence[Dict[str, Any]]] = None,
        invalid_count: Optional[int] = None,
        total_chunks: Optional[int] = None,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        self.issues: List[Dict[str, Any]] = list(issues or [])[:10]
        self.offending_ids: List[str] = [issue["id"] for issue in self.issues]
        self.invalid_count = (
            invalid_count if invalid_count is not None else len(self.issues)
        )
        self.total_chunks = total_chunks
        super().__init__(
            message,
            error_code=error_code,
            why_it_happened=why_it_happened,
            how_to_fix=how_to_fix,
            context={
                "offending_ids": self.offending_ids,
                "invalid_count": self.invalid_count,
                "total_chunks": total_chunks,
            },
        )


class NoSearchDataError(SearchError):
    """Raised when no chunk carries keywords or embeddings."""

    kind = "NoSearchData"
    error_code = "CR-SRCH-005"
    why_it_happened = "No chunk in the set has keywords or an embedding"
    how_to_fix = [
        "Vectorize the collection first",
        "Extract keywords for the chunks before searching",
    ]


class MissingCollectionIdError(SearchError):
    """Raised when chunks lack embeddings and no collection id is known."""

    kind = "MissingCollectionId"
    error_code = "CR-SRCH-006"
    why_it_happened = (
        "Some chunks have no embedding and there is no collection id to "
        "fetch their vectors with"
    )
    how_to_fix = [
        "Pass collection_id in the search options",
        "Set collection_id on the chunks",
    ]


class EnrichmentUnavailableError(SearchError):
    """Raised when chunks lack embeddings and no enrichment source is set."""

    kind = "EnrichmentUnavailable"
    error_code = "CR-SRCH-007"
    why_it_happened = (
        "Some chunks have no embedding and no vector enrichment "
        "collaborator is configured"
    )
    how_to_fix = [
        "Configure a VectorEnrichment collaborator on the orchestrator",
        "Supply chunks with precomputed embeddings",
    ]


class CollaboratorFailureError(SearchError):
    """
    Raised when an embedding or enrichment collaborator fails.

    The underlying error is available as ``__cause__`` (and through
    ``collaborator_error``) so the caller's own retry policy can inspect it.
    """

    kind = "CollaboratorFailure"
    error_code = "CR-SRCH-008"
    why_it_happened = "An external embedding or vector collaborator failed"
    how_to_fix = [
        "Check the provider's availability and credentials",
        "Retry with backoff if the provider is rate limited",
    ]

    def __init__(
        self,
        message: str,
        collaborator: str = "unknown",
        collaborator_error: Optional[BaseException] = None,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        self.collaborator = collaborator
        self.collaborator_error = collaborator_error
        super().__init__(
            message,
            error_code=error_code,
            why_it_happened=why_it_happened,
            how_to_fix=how_to_fix,
            context={
                "collaborator": collaborator,
                "error": str(collaborator_error) if collaborator_error else None,
            },
        )


class SearchCancelledError(SearchError):
    """Raised for batch queries skipped after the cancel signal was set."""

    kind = "Cancelled"
    error_code = "CR-SRCH-009"
    why_it_happened = "The batch was cancelled before this query ran"
    how_to_fix = ["Re-submit the remaining queries"]


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(ChunkRankError):
    """
    Raised when input validation fails.

    Used for search options and data that do not meet requirements.
    """

    kind = "Validation"
    error_code = "CR-VAL-000"
    why_it_happened = "The provided input did not pass validation"
    how_to_fix = [
        "Check the input format and values",
        "Review the documentation for valid input requirements",
    ]


class ConfigValidationError(ValidationError):
    """
    Raised when configuration validation fails.

    Includes the invalid field name and the reason.
    """

    kind = "ConfigValidation"
    error_code = "CR-VAL-001"
    why_it_happened = "The configuration file contains invalid settings"
    how_to_fix = [
        "Check config.yaml for syntax errors",
        "Verify all required fields are present",
        "Compare with the default configuration",
    ]
