"""Error taxonomy for the extraction pipeline."""

from __future__ import annotations


class ExtractionError(RuntimeError):
    """Base error carrying the failing stage and a user-facing message."""

    default_user_message = "Content could not be extracted."

    def __init__(self, message: str, *, stage: str = "", user_message: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.user_message = user_message or self.default_user_message

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.stage}] {message}" if self.stage else message


class InvalidReference(ExtractionError):
    default_user_message = "This video link is not valid."


class FetchFailed(ExtractionError):
    default_user_message = "The source could not be reached. Try copying the text manually."


class ParseFailed(ExtractionError):
    default_user_message = "The source could not be read. Try copying the text manually."


class InsufficientContent(ExtractionError):
    default_user_message = (
        "Could not extract meaningful content from this source. Try copying the text manually."
    )


class FallbackUnavailable(ExtractionError):
    default_user_message = "No transcript is available for this video."


class UnsupportedFormat(ExtractionError):
    default_user_message = "This file format is not supported yet."


class NotYetSupported(UnsupportedFormat):
    pass


class MissingCredential(ExtractionError):
    default_user_message = "The AI service is not configured."


# Failures the video cascade absorbs by moving to the next tier.
ESCALATING_ERRORS: tuple[type[ExtractionError], ...] = (FetchFailed, ParseFailed)
