from __future__ import annotations
from typing import Optional
import os, re, tempfile
from credanchor_core.errors import ContentStoreError, NotFoundError
from credanchor_core.content.provider import ContentStore, Hasher, default_hasher
from credanchor_core.logger import get_logger

log = get_logger("CA.Content.FS")

_LOCATOR = re.compile(r"^[A-Za-z0-9_-]{4,128}$")


class FileSystemContentStore(ContentStore):
    """
    Blobs under <root>/<ab>/<locator>, sharded by the first two characters.

    Writes go to a temp file in the shard and are renamed into place, so two
    concurrent put() calls for the same bytes both land on an identical file.
    """
    name = "filesystem"

    def __init__(self, root="data/blobs", hasher: Optional[Hasher] = None):
        self.root = root
        self.hasher = hasher or default_hasher
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise ContentStoreError(f"cannot create content root {root}: {e}")

    def _path(self, locator: str) -> str:
        if not _LOCATOR.match(locator or ""):
            raise NotFoundError(f"invalid locator: {locator!r}")
        return os.path.join(self.root, locator[:2], locator)

    def put(self, data: bytes) -> str:
        locator = self.hasher(bytes(data))
        path = self._path(locator)
        if os.path.exists(path):
            log.debug(f"[FS PUT] exists {locator}")
            return locator
        tmp = None
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=os.path.dirname(path), prefix=".tmp-")
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, path)
        except OSError as e:
            if tmp is not None and os.path.exists(tmp):
                try:
                    os.unlink(tmp)
                except OSError as cleanup:
                    log.warning(f"[FS PUT] could not remove {tmp}: {cleanup}")
            raise ContentStoreError(f"write failed for {locator}: {e}")
        log.info(f"[FS PUT] {locator} bytes={len(data)}")
        return locator

    def get(self, locator: str) -> bytes:
        path = self._path(locator)
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError:
            raise NotFoundError(f"blob not found: {locator}")
        except OSError as e:
            raise ContentStoreError(f"read failed for {locator}: {e}")

    def exists(self, locator: str) -> bool:
        try:
            return os.path.isfile(self._path(locator))
        except NotFoundError:
            return False
