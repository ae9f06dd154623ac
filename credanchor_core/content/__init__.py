# credanchor_core/content/__init__.py

from .provider import ContentStore
from .providers.memory_provider import InMemoryContentStore
from .providers.filesystem_provider import FileSystemContentStore
from .providers.ipfs_provider import IPFSContentStore
from credanchor_core.constants import DEFAULT_CONTENT_ROOT, DEFAULT_IPFS_URL, DEFAULT_REQUEST_TIMEOUT
from credanchor_core.errors import ConfigurationError
import os


def load_content_store(config: dict | None = None) -> ContentStore:
    """
    Factory resolver for the content store backend.

        - filesystem (default)
        - ipfs
        - memory
    """
    config = config or {}
    provider = config.get("content_provider") or os.getenv("CREDANCHOR_CONTENT_PROVIDER", "filesystem")

    if provider == "memory":
        return InMemoryContentStore()

    if provider == "filesystem":
        root = config.get("content_root") or os.getenv("CREDANCHOR_CONTENT_ROOT", DEFAULT_CONTENT_ROOT)
        return FileSystemContentStore(root)

    if provider == "ipfs":
        url = config.get("ipfs_url") or os.getenv("CREDANCHOR_IPFS_URL", DEFAULT_IPFS_URL)
        timeout = float(config.get("request_timeout") or DEFAULT_REQUEST_TIMEOUT)
        return IPFSContentStore(url, timeout=timeout)

    raise ConfigurationError(f"Unknown content provider: {provider}")


__all__ = [
    "ContentStore",
    "InMemoryContentStore",
    "FileSystemContentStore",
    "IPFSContentStore",
    "load_content_store",
]
