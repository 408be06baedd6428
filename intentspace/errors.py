"""Exception taxonomy shared by the pipeline, the store and the outer surfaces."""
from __future__ import annotations


class IntentSpaceError(Exception):
    """Base class for every error raised on purpose by IntentSpace."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(IntentSpaceError):
    """Missing or invalid URL, query or parameter. Nothing was started."""

    status_code = 400


class FetchFailure(IntentSpaceError):
    """A single URL could not be fetched. Absorbed by the crawler."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class NoPagesFetched(IntentSpaceError):
    """The crawl finished without a single qualifying page."""

    def __init__(
        self,
        message: str = "No pages could be fetched. The site may block automated access.",
    ) -> None:
        super().__init__(message)


class ProcessingFailure(IntentSpaceError):
    """Unexpected failure in the chunk / cluster / graph / evidence stages."""


class LookupFailure(IntentSpaceError):
    """Unknown graph or node id."""

    status_code = 404
