# Ensure 'consultbook' is importable even when pytest rootdir is 'backend/',
# and point settings at throwaway resources before any module reads them.
import os
from pathlib import Path
import sys

_BACKEND_DIR = Path(__file__).resolve().parent
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SLOT_LOCK_ENABLED", "false")
os.environ.setdefault("ZOOM_ENABLED", "false")

collect_ignore_glob = [
    # Migrations are exercised through alembic, not collected as tests
    "alembic/*",
]
