"""Disk cache for downloaded file bodies.

Girder file ids address immutable content, so a body downloaded once can be
served from disk on every later refresh.
"""

import hashlib
from pathlib import Path


class FileCache:
    """Disk-backed byte cache with SHA256 key hashing."""

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{hashlib.sha256(key.encode()).hexdigest()}.bin"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if path.exists():
            return path.read_bytes()
        return None

    def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def has(self, key: str) -> bool:
        return self._path(key).exists()
