import pytest
from credanchor_core.content import InMemoryContentStore
from credanchor_core.crypto import Signer
from credanchor_core.ledger import MemoryLedger
from credanchor_core.records import CredentialDraft
from credanchor_core.storage import InMemoryRecordIndex
from credanchor_core.utils import sha256


@pytest.fixture
def content():
    return InMemoryContentStore()


@pytest.fixture
def ledger():
    return MemoryLedger(Signer.generate())


@pytest.fixture
def index():
    return InMemoryRecordIndex()


@pytest.fixture
def make_draft():
    def _make(doc=b"diploma of alice", with_content=True, **overrides):
        fields = dict(
            credential_hash=sha256(doc),
            title="BSc Computer Science",
            recipient_identity="0xa11ce",
            issuer_user_reference="user-42",
            credential_type="degree",
            metadata_locator="ipfs://meta/alice",
            content=doc if with_content else None,
            tags={"cs", "2024"},
        )
        fields.update(overrides)
        return CredentialDraft(**fields)
    return _make
