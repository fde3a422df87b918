from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Protocol

from urllib3 import HTTPHeaderDict

from .stream import ContentStream


@dataclass(frozen=True)
class FetchRequest:
    url: str
    headers: Mapping[str, str] = field(default_factory=HTTPHeaderDict, hash=False)

    def __post_init__(self) -> None:
        # Case-insensitive, read-only view over the caller's headers.
        object.__setattr__(self, "headers", MappingProxyType(HTTPHeaderDict(self.headers or {})))


@dataclass(frozen=True)
class FetchResult:
    content: ContentStream = field(compare=False, repr=False)
    content_length: Optional[int]
    status_code: int
    valid_until: datetime
    revalidation_token: Optional[str]
    file_extension: str
    received_at: datetime


class FetchService(Protocol):
    def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResult: ...


class MimeRegistry(Protocol):
    def guess_extension(self, type: str, strict: bool = True) -> Optional[str]: ...
