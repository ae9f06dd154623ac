import threading
from typing import Dict, Optional
from credanchor_core.errors import NotFoundError
from credanchor_core.content.provider import ContentStore, Hasher, default_hasher


class InMemoryContentStore(ContentStore):
    name = "memory"

    def __init__(self, hasher: Optional[Hasher] = None):
        self.hasher = hasher or default_hasher
        self.blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes) -> str:
        locator = self.hasher(bytes(data))
        with self._lock:
            self.blobs.setdefault(locator, bytes(data))
        return locator

    def get(self, locator: str) -> bytes:
        try:
            return self.blobs[locator]
        except KeyError:
            raise NotFoundError(f"blob not found: {locator}")

    def exists(self, locator: str) -> bool:
        return locator in self.blobs

    # test hook: overwrite stored bytes without re-addressing them
    def tamper(self, locator: str, data: bytes) -> None:
        self.blobs[locator] = bytes(data)
