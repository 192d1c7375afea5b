from __future__ import annotations


class PercollateError(Exception):
    """Base class for every failure surfaced by the bundling pipeline."""


class PageFailed(PercollateError):
    """A single URL could not be turned into an article."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.message = message


class FetchFailed(PageFailed):
    pass


class ExtractionFailed(PageFailed):
    pass


class NoContent(PercollateError):
    def __init__(self, message: str = "No articles to bundle") -> None:
        super().__init__(message)


class RenderFailed(PercollateError):
    pass


class WriteFailed(PercollateError):
    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message
