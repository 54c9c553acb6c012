"""
Local filesystem blob store - Implements BlobStore protocol.

References are paths relative to the storage root. Resolution refuses
references that escape the root.
"""

import logging
import mimetypes
from pathlib import Path

from src.domain.models import BlobHandle

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """
    Implements BlobStore protocol on a local directory.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def put(self, key: str, content: bytes) -> str:
        path = self._resolve(key)
        if path is None:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info("Stored %d bytes at %s", len(content), key)
        return key

    def open(self, ref: str, filename: str) -> BlobHandle | None:
        path = self._resolve(ref)
        if path is None or not path.is_file():
            return None
        media_type, _ = mimetypes.guess_type(filename)
        return BlobHandle(
            path=path,
            filename=filename,
            media_type=media_type or "application/octet-stream",
        )

    def delete(self, ref: str) -> None:
        path = self._resolve(ref)
        if path is None:
            return
        path.unlink(missing_ok=True)
        logger.info("Removed %s", ref)

    def _resolve(self, ref: str) -> Path | None:
        path = (self._root / ref).resolve()
        if not path.is_relative_to(self._root):
            return None
        return path
