import shutil
from pathlib import Path
from typing import BinaryIO

from content_hub.storage.errors import BlobNotFound

class LocalStorage:
    """Blobs as plain files under ``root``; keys are relative POSIX paths."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path == self.root or self.root not in path.parents:
            raise ValueError(f"Storage key escapes the upload root: {key!r}")
        return path

    def save(self, *, key: str, fileobj: BinaryIO, content_type: str | None = None) -> int:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as out:
            shutil.copyfileobj(fileobj, out)
        return path.stat().st_size

    def open(self, *, key: str) -> BinaryIO:
        try:
            return self._path(key).open("rb")
        except FileNotFoundError:
            raise BlobNotFound(key)

    def exists(self, *, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, *, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
