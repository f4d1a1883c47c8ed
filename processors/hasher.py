"""Content digests used as the idempotency key for ingested files."""
from __future__ import annotations

import hashlib
from typing import BinaryIO

CHUNK_SIZE = 64 * 1024


def digest_stream(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    """Return the lowercase hex SHA-256 of everything left in `stream`."""
    sha = hashlib.sha256()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        sha.update(chunk)
    return sha.hexdigest()


def compute_digest(path: str) -> str:
    """Hash the full content of `path`. Raises OSError if it cannot be opened."""
    with open(path, "rb") as fh:
        return digest_stream(fh)
