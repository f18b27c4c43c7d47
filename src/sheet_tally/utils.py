"""Shared helpers: file hashing and timestamps."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return utcnow().isoformat()


def sheet_timestamp(moment: datetime) -> str:
    """ISO-like stamp (``2024-05-01T09-30-00``) that is legal in a sheet title."""
    return moment.strftime("%Y-%m-%dT%H-%M-%S")
