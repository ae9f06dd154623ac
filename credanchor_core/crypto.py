"""
credanchor_core.crypto
----------------------
Ed25519 primitives and the signing identity handed to ledger clients.

- ed25519_generate / ed25519_sign / ed25519_verify: raw-key helpers
- Signer: the signing-identity capability; derives the issuer address and
  signs canonical ledger transaction bodies
- load_signer(): build a Signer from a base64 private key (env or config)
"""

from __future__ import annotations
from typing import Tuple, Optional, Dict, Any
from cryptography.hazmat.primitives.asymmetric import ed25519
import hashlib, os
from .utils import b64e, b64d, canonical_json
from .errors import ConfigurationError

# --------- Ed25519 (sign/verify) ----------
def ed25519_generate() -> Tuple[bytes, bytes]:
    sk = ed25519.Ed25519PrivateKey.generate()
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()

def ed25519_sign(priv_raw: bytes, data: bytes) -> bytes:
    sk = ed25519.Ed25519PrivateKey.from_private_bytes(priv_raw)
    return sk.sign(data)

def ed25519_verify(pub_raw: bytes, sig: bytes, data: bytes) -> bool:
    try:
        ed25519.Ed25519PublicKey.from_public_bytes(pub_raw).verify(sig, data)
        return True
    except Exception:
        return False


def derive_address(pub_raw: bytes) -> str:
    """
    Account address for an Ed25519 public key.

    Single-key authentication scheme: sha3-256(pubkey || 0x00), hex, 0x-prefixed.
    """
    return "0x" + hashlib.sha3_256(pub_raw + b"\x00").hexdigest()


class Signer:
    """Signing identity for ledger operations."""

    def __init__(self, priv_raw: bytes):
        if len(priv_raw) != 32:
            raise ConfigurationError("Ed25519 private key must be 32 bytes")
        self._priv = priv_raw
        self.public_key = ed25519.Ed25519PrivateKey.from_private_bytes(priv_raw).public_key().public_bytes_raw()
        self.address = derive_address(self.public_key)

    @classmethod
    def generate(cls) -> "Signer":
        priv, _ = ed25519_generate()
        return cls(priv)

    def sign(self, body: Dict[str, Any]) -> str:
        return b64e(ed25519_sign(self._priv, canonical_json(body)))

    def verify(self, body: Dict[str, Any], sig_b64: str) -> bool:
        return ed25519_verify(self.public_key, b64d(sig_b64), canonical_json(body))


def load_signer(config: Optional[dict] = None) -> Optional[Signer]:
    """
    Resolve the signer from config["signer_key"] or CREDANCHOR_SIGNER_KEY.

    Returns None when no key is configured; ledger clients then raise
    ConfigurationError on first use.
    """
    config = config or {}
    key = config.get("signer_key") or os.getenv("CREDANCHOR_SIGNER_KEY")
    if not key:
        return None
    try:
        raw = b64d(key)
    except ValueError as e:
        raise ConfigurationError(f"signer key is not valid base64: {e}")
    return Signer(raw)
