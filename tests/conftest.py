"""Process-wide test configuration. Settings are read at import time, so env comes first."""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-chars")
os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key-for-unit-tests")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LEDGER_BACKEND", "memory")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")
