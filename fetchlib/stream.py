from typing import Callable, Iterable, Optional

from urllib3 import exceptions as urllib3_exc

from .exceptions import TransportError


class ContentStream:
    """Single-pass iterator over the byte chunks of a response body.

    ``on_close`` is invoked exactly once, with ``True`` when the body was read
    to the end and ``False`` when the stream was abandoned early (``close()``,
    leaving a ``with`` block, a transport failure mid-read, or being garbage
    collected unfinished).
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        on_close: Optional[Callable[[bool], None]] = None,
        url: str = "",
        on_chunk: Optional[Callable[[int], None]] = None,
    ):
        self._chunks = iter(chunks)
        self._on_close = on_close
        self._on_chunk = on_chunk
        self._url = url
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "ContentStream":
        return self

    def __next__(self) -> bytes:
        if self._closed:
            raise StopIteration
        try:
            chunk = next(self._chunks)
        except StopIteration:
            self._finish(completed=True)
            raise
        except urllib3_exc.HTTPError as e:
            self._finish(completed=False)
            raise TransportError(self._url, e) from e
        if self._on_chunk is not None:
            self._on_chunk(len(chunk))
        return chunk

    def read(self) -> bytes:
        """Consume whatever is left of the body."""
        return b"".join(self)

    def close(self) -> None:
        self._finish(completed=False)

    def _finish(self, completed: bool) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close(completed)

    def __enter__(self) -> "ContentStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        # Dropped mid-read without close(); still hand the connection back.
        try:
            self.close()
        except Exception:
            pass
