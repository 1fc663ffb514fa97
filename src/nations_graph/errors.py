"""Exception hierarchy for page processing.

Every failure that can end the processing of a single title is a
``HistoryError``. The graph builder records these per title instead of
letting them abort the traversal:

- HTTPError / JsonParseError: raised by the page fetcher
- WikiParseError: raised by the markup parser
- MissingInfoboxError / DoubleInfoboxError: template selection
- PropInterpretationError / MissingInfoboxFieldError: field extraction
"""

from __future__ import annotations


class HistoryError(Exception):
    """Base exception for all per-title processing errors."""

    pass


# =============================================================================
# FETCH ERRORS
# =============================================================================


class HTTPError(HistoryError):
    """Raised when the page could not be retrieved at the transport level."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class JsonParseError(HistoryError):
    """Raised when the API response envelope is malformed or has no content."""

    pass


# =============================================================================
# MARKUP ERRORS
# =============================================================================


class WikiParseError(HistoryError):
    """Raised when markup cannot be parsed into a document.

    Attributes:
        message: Human-readable description of the failure.
        offset: Approximate character offset where parsing failed.
    """

    def __init__(self, message: str, offset: int) -> None:
        super().__init__(f"{message} (at offset {offset})")
        self.message = message
        self.offset = offset


# =============================================================================
# INFOBOX ERRORS
# =============================================================================


class MissingInfoboxError(HistoryError):
    """Raised when a page has neither a former country nor subdivision infobox."""

    def __init__(self) -> None:
        super().__init__("page has no former country or former subdivision infobox")


class DoubleInfoboxError(HistoryError):
    """Raised when a page has both a former country and a subdivision infobox."""

    def __init__(self) -> None:
        super().__init__("page has both a former country and a former subdivision infobox")


class PropInterpretationError(HistoryError):
    """Raised when an infobox field has a value of unsupported shape."""

    def __init__(self, field_key: str) -> None:
        super().__init__(f"could not interpret infobox field {field_key!r}")
        self.field_key = field_key


class MissingInfoboxFieldError(HistoryError):
    """Raised when a mandatory infobox field is absent or unusable."""

    def __init__(self, field_key: str) -> None:
        super().__init__(f"missing mandatory infobox field {field_key!r}")
        self.field_key = field_key
