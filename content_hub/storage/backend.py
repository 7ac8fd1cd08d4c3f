from functools import lru_cache
from typing import BinaryIO, Protocol

from content_hub.config import settings


class BlobStorage(Protocol):
    def save(self, *, key: str, fileobj: BinaryIO, content_type: str | None = None) -> int: ...

    def open(self, *, key: str) -> BinaryIO: ...

    def exists(self, *, key: str) -> bool: ...

    def delete(self, *, key: str) -> None: ...


@lru_cache
def get_storage() -> BlobStorage:
    if settings.STORAGE_BACKEND == "s3":
        from content_hub.storage.s3 import S3Storage
        return S3Storage()

    from content_hub.storage.local import LocalStorage
    return LocalStorage(settings.UPLOAD_DIR)
