"""
Exception hierarchy for the GEO Writer article pipeline.

Every error raised on purpose by the package derives from GeoWriterError so
callers (the CLI, the batch orchestrator) can tell pipeline failures apart
from programming errors.
"""

from __future__ import annotations

from typing import Any, List, Optional


class GeoWriterError(Exception):
    """Base exception for all pipeline errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(GeoWriterError):
    """A required token, account UUID or API key is missing."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class BriefError(GeoWriterError):
    """The brief source rejected the request or returned an unusable body."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class GenerationError(GeoWriterError):
    """The generation backend failed or returned an unusable response."""


class KeywordGenerationError(GenerationError):
    """No keywords could be parsed from the backend response."""


class PublishError(GeoWriterError):
    """The CMS rejected a request."""

    def __init__(self, message: str, status_code: int = 0, server_message: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class MediaUploadError(PublishError):
    """The CMS rejected the featured image upload."""


class TrackerError(GeoWriterError):
    """A task tracker rejected an update."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class CsvFormatError(GeoWriterError):
    """The batch CSV is empty, malformed or missing required columns."""

    def __init__(
        self,
        message: str,
        missing_columns: Optional[List[str]] = None,
        found_columns: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.missing_columns = list(missing_columns or [])
        self.found_columns = list(found_columns or [])


# ---------------------------------------------------------------------------
# Content validation (publish-blocking)
# ---------------------------------------------------------------------------


class ContentError(GeoWriterError):
    """The assembled article does not satisfy a publishing requirement."""


class InsufficientLinksError(ContentError):
    """Fewer internal links than required could be placed in the article."""

    def __init__(self, found: int, required: int = 3):
        super().__init__(
            f"Only {found} of {required} internal links could be inserted: "
            f"the article does not have enough paragraphs to link"
        )
        self.found = found
        self.required = required


class EmptyArticleError(ContentError):
    """The article has no sections or a section came back empty."""


class ImageGenerationError(GeoWriterError):
    """No valid featured image was produced within the attempt limit."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(
            f"Could not generate a valid image after {attempts} attempts. "
            f"Last error: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


class BatchAbortedError(GeoWriterError):
    """A batch run stopped on its first fatal error.

    ``progress`` is the BatchProgress snapshot at the moment of failure, so
    the operator can see which URLs were already published.
    """

    def __init__(self, message: str, progress: Any = None, account_index: int = 0):
        super().__init__(message)
        self.progress = progress
        self.account_index = account_index
