# credanchor_core/constants.py

# ledger operations may take tens of seconds to be included
DEFAULT_LEDGER_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_REQUEST_TIMEOUT = 10.0

# per-signal bound for the verification reads
DEFAULT_VERIFY_TIMEOUT = 10.0

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

DEFAULT_DB_PATH = "db/credentials.db"
DEFAULT_CONTENT_ROOT = "data/blobs"
DEFAULT_IPFS_URL = "http://127.0.0.1:5001"
DEFAULT_LEDGER_URL = "http://127.0.0.1:8080/v1"
