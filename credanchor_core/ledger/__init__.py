# credanchor_core/ledger/__init__.py
import os
from credanchor_core.constants import DEFAULT_LEDGER_URL, DEFAULT_POLL_INTERVAL, DEFAULT_REQUEST_TIMEOUT
from credanchor_core.crypto import load_signer
from credanchor_core.errors import ConfigurationError
from credanchor_core.ledger.ledger_base import (
    LedgerClient,
    LedgerReceipt,
    OnChainRecord,
    OperationHandle,
    OpType,
)
from credanchor_core.ledger.ledger_memory import MemoryLedger
from credanchor_core.ledger.ledger_http import HTTPLedgerClient


def ledger_factory(config: dict | None = None) -> LedgerClient:
    """
    provider:
      - "http"   → ledger full node REST API (default)
      - "memory" → in-process ledger
    The signer comes from config["signer_key"] or CREDANCHOR_SIGNER_KEY.
    """
    config = config or {}
    provider = (config.get("ledger_provider") or os.getenv("CREDANCHOR_LEDGER_PROVIDER", "http")).lower()
    signer = config.get("signer") or load_signer(config)

    if provider == "memory":
        return MemoryLedger(signer)

    if provider == "http":
        return HTTPLedgerClient(
            config.get("ledger_url") or os.getenv("CREDANCHOR_LEDGER_URL", DEFAULT_LEDGER_URL),
            signer=signer,
            poll_interval=float(config.get("poll_interval") or DEFAULT_POLL_INTERVAL),
            request_timeout=float(config.get("request_timeout") or DEFAULT_REQUEST_TIMEOUT),
        )

    raise ConfigurationError(f"Unknown ledger provider: {provider}")


__all__ = [
    "LedgerClient",
    "LedgerReceipt",
    "OnChainRecord",
    "OperationHandle",
    "OpType",
    "MemoryLedger",
    "HTTPLedgerClient",
    "ledger_factory",
]
