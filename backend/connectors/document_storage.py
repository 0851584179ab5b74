"""
Document storage connector: blob store for uploaded business documents.
Blobs live under a local directory (DOCUMENT_STORAGE_DIR); keys are relative
paths such as "business_documents/<business_id>/<random>.pdf".
"""
import os
import secrets
from pathlib import Path

from errors import StorageError


class DocumentStorageConnector:
    """Put, open and remove document blobs."""

    def __init__(self, root: str | Path | None = None):
        """
        root: Directory that holds the blobs. Defaults to DOCUMENT_STORAGE_DIR or ./documents.
        """
        raw = root if root is not None else os.getenv("DOCUMENT_STORAGE_DIR", "./documents")
        self.root = Path(raw).resolve()

    def is_configured(self) -> bool:
        """True if the storage root exists or can be created."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return os.access(self.root, os.W_OK)

    @staticmethod
    def new_key(business_id: int, file_name: str) -> str:
        """Random blob key that keeps the original extension."""
        ext = Path(file_name).suffix.lower()
        return f"business_documents/{business_id}/{secrets.token_hex(8)}{ext}"

    def _resolve(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Invalid document key: {key}")
        return path

    def upload(self, key: str, content: bytes) -> None:
        """Write a blob. Refuses to overwrite an existing key."""
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "xb") as f:
                f.write(content)
        except FileExistsError as e:
            raise StorageError(f"Document already exists: {key}") from e
        except OSError as e:
            raise StorageError(f"Failed to store document: {e}") from e

    def remove(self, key: str) -> bool:
        """Delete a blob. Returns False if it was already gone."""
        path = self._resolve(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to remove document: {e}") from e
        return True

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def path_for(self, key: str) -> Path:
        """Filesystem path of an existing blob (for streaming downloads)."""
        path = self._resolve(key)
        if not path.is_file():
            raise StorageError(f"Document blob missing: {key}")
        return path
