"""Object storage for raw uploads, addressed by opaque keys."""
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import StorageError
from .logging_config import setup_logger

logger = setup_logger(__name__)


class Storage(ABC):
    @abstractmethod
    def upload(self, key: str, data: bytes) -> None:
        pass

    @abstractmethod
    def download(self, key: str) -> bytes:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class InMemoryStorage(Storage):
    def __init__(self):
        self.objects = {}

    def upload(self, key, data):
        self.objects[key] = bytes(data)

    def download(self, key):
        try:
            return self.objects[key]
        except KeyError:
            raise StorageError(f"object not found: {key}") from None

    def delete(self, key):
        if self.objects.pop(key, None) is None:
            raise StorageError(f"object not found: {key}")


class LocalStorage(Storage):
    """Stores each object as a file under a root directory."""

    def __init__(self, root):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key):
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise StorageError(f"invalid object key: {key}")
        return path

    def upload(self, key, data):
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug(f"Stored {len(data)} bytes at {key}")

    def download(self, key):
        path = self._path(key)
        if not path.is_file():
            raise StorageError(f"object not found: {key}")
        return path.read_bytes()

    def delete(self, key):
        path = self._path(key)
        if not path.is_file():
            raise StorageError(f"object not found: {key}")
        path.unlink()
        logger.debug(f"Deleted {key}")
