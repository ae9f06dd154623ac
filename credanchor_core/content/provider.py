# credanchor_core/content/provider.py
from __future__ import annotations
from typing import Callable

from credanchor_core.utils import sha256

Hasher = Callable[[bytes], str]


class ContentStore:
    """
    Content-addressed blob storage.

    The locator returned by put() is derived from the bytes, so put() is safe
    to retry unconditionally and identical bytes are stored once.
    Backend failures raise ContentStoreError; a missing blob raises NotFoundError.
    """
    name: str = "base"

    def put(self, data: bytes) -> str: ...
    def get(self, locator: str) -> bytes: ...
    def exists(self, locator: str) -> bool: ...

    def close(self) -> None:
        return


def default_hasher(data: bytes) -> str:
    return sha256(data)
