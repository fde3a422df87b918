"""Exceptions raised by fetchlib."""


class FetchError(Exception):
    """Base class for fetch failures."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(message)


class InvalidUrlError(FetchError, ValueError):
    """Raised when a URL is not an absolute http(s) URL."""

    def __init__(self, url: str):
        super().__init__(url, f"Not an absolute http(s) URL: {url!r}")


class TransportError(FetchError):
    """Raised when the request cannot be sent or the connection fails."""

    def __init__(self, url: str, original: Exception):
        self.original = original
        super().__init__(url, f"Transport failed for {url}: {original}")
