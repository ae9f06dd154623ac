# credanchor_core/content/providers/ipfs_provider.py
import requests
from credanchor_core.errors import ContentStoreError, NotFoundError
from credanchor_core.content.provider import ContentStore
from credanchor_core.logger import get_logger

log = get_logger("CA.Content.IPFS")


class IPFSContentStore(ContentStore):
    """
    Content store backed by an IPFS node's HTTP RPC API (/api/v0).

    Locators are CIDs chosen by the node. IPFS addresses by its own hash, so
    the CID is never compared to a credential hash; verification re-hashes
    the bytes returned by get().
    """
    name = "ipfs"

    def __init__(self, api_url: str = "http://127.0.0.1:5001", timeout: float = 10.0):
        self.base_url = api_url.rstrip("/") + "/api/v0"
        self.timeout = timeout

    def _post(self, endpoint: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{endpoint}"
        try:
            res = requests.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log.error(f"[IPFS] {endpoint} unreachable: {e}")
            raise ContentStoreError(f"IPFS node unreachable: {e}")
        return res

    @staticmethod
    def _is_missing(res: requests.Response) -> bool:
        # the RPC API answers 500 with a JSON error body for unknown blocks
        if res.status_code == 404:
            return True
        try:
            message = (res.json() or {}).get("Message", "")
        except ValueError:
            message = res.text or ""
        return "not found" in message.lower() or "no link named" in message.lower()

    def put(self, data: bytes) -> str:
        res = self._post("add", params={"pin": "true", "cid-version": "1"}, files={"file": data})
        if not res.ok:
            log.error(f"[IPFS ADD] {res.status_code}: {res.text}")
            raise ContentStoreError(f"IPFS add failed with HTTP {res.status_code}")
        try:
            cid = res.json()["Hash"]
        except (ValueError, KeyError) as e:
            raise ContentStoreError(f"IPFS add returned malformed body: {e}")
        log.info(f"[IPFS ADD] cid={cid} bytes={len(data)}")
        return cid

    def get(self, locator: str) -> bytes:
        res = self._post("cat", params={"arg": locator})
        if res.ok:
            return res.content
        if self._is_missing(res):
            raise NotFoundError(f"blob not found: {locator}")
        log.error(f"[IPFS CAT] {res.status_code}: {res.text}")
        raise ContentStoreError(f"IPFS cat failed with HTTP {res.status_code}")

    def exists(self, locator: str) -> bool:
        res = self._post("block/stat", params={"arg": locator})
        if res.ok:
            return True
        if self._is_missing(res):
            return False
        raise ContentStoreError(f"IPFS block/stat failed with HTTP {res.status_code}")
