"""Filesystem-backed blob store keyed by hierarchical paths.

Keys are '/'-separated relative paths under a root directory, for example
``instances/<id>/tiles/2,1.jpg``. Writes go to a temporary sibling file and
are moved into place with ``os.replace`` so readers never see a partial blob.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from ..errors import StoreIOError

logger = logging.getLogger(__name__)


class BlobStore:
    """Byte-oriented key-value store rooted at a directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        parts = [p for p in key.split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise StoreIOError(f"Invalid blob key: {key!r}")
        return self.root.joinpath(*parts)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def read(self, key: str) -> Optional[bytes]:
        """Read a blob, returning None if the key is missing.

        Raises:
            StoreIOError: If the blob exists but cannot be read.
        """
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreIOError(f"Failed to read {key}: {e}") from e

    def write(self, key: str, data: bytes) -> None:
        """Atomically replace a blob, creating parent namespaces as needed."""
        path = self._path(key)
        tmp = path.with_name(f".{path.name}.tmp.{os.getpid()}.{threading.get_ident()}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError as e:
            try:
                tmp.unlink()
            except OSError:
                pass
            raise StoreIOError(f"Failed to write {key}: {e}") from e
        logger.debug("Wrote %s (%d bytes)", key, len(data))

    def ensure_namespace(self, prefix: str) -> None:
        """Create the directory backing a key prefix."""
        try:
            self._path(prefix).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Failed to create {prefix}: {e}") from e

    def list_keys(self, prefix: str) -> list[str]:
        """List blob names directly under a prefix (temporary files excluded)."""
        path = self._path(prefix)
        try:
            entries = list(path.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreIOError(f"Failed to list {prefix}: {e}") from e
        return sorted(p.name for p in entries if p.is_file() and not p.name.startswith("."))

    def list_namespaces(self, prefix: str) -> list[str]:
        """List child namespaces (directories) directly under a prefix."""
        path = self._path(prefix)
        try:
            entries = list(path.iterdir())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreIOError(f"Failed to list {prefix}: {e}") from e
        return sorted(p.name for p in entries if p.is_dir())
