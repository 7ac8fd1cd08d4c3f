import os
from typing import BinaryIO

import boto3
from botocore.exceptions import ClientError

from content_hub.config import settings
from content_hub.storage.errors import BlobNotFound

MISSING_CODES = ("404", "NoSuchKey", "NotFound")

def _is_missing(error: ClientError) -> bool:
    code = getattr(error, "response", {}).get("Error", {}).get("Code")
    return code in MISSING_CODES

class S3Storage:
    def __init__(self, client=None, bucket: str | None = None):
        self.bucket = bucket or settings.S3_BUCKET
        self.client = client or boto3.client(
            "s3",
            region_name = settings.S3_REGION,
            aws_access_key_id = settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key = settings.S3_SECRET_ACCESS_KEY,
        )

    def save(self, *, key: str, fileobj: BinaryIO, content_type: str | None = None) -> int:
        fileobj.seek(0, os.SEEK_END)
        size = fileobj.tell()
        fileobj.seek(0)

        params = {"Bucket": self.bucket, "Key": key, "Body": fileobj, "ContentLength": size}
        if content_type:
            params["ContentType"] = content_type
        self.client.put_object(**params)
        return size

    def open(self, *, key: str) -> BinaryIO:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise BlobNotFound(key)
            raise
        return resp["Body"]

    def exists(self, *, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return False
            raise
        return True

    def delete(self, *, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)
