class BlobNotFound(Exception):
    """The storage backend has no blob under the requested key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Blob not found: {key}")
