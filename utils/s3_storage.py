"""S3 storage for watermarked place images.

- {prefix}/{owner_id}_{epoch_ms}.jpg
"""

from __future__ import annotations

from typing import Iterator, Optional

import boto3

from utils.storage_manager import StoredAsset


class S3AssetStorage:
    """Same contract as LocalAssetStorage, backed by an S3 bucket"""

    def __init__(
        self,
        bucket_name: str,
        prefix: str = "images/places",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region: str = "us-east-1",
        client=None,
    ) -> None:
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        self.s3_client = client or boto3.client(
            "s3",
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            region_name=region,
        )

    def _key(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def save(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str:
        key = self._key(name)
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return key

    def iter_assets(self) -> Iterator[StoredAsset]:
        paginator = self.s3_client.get_paginator("list_objects_v2")
        list_prefix = f"{self.prefix}/" if self.prefix else ""
        for page in paginator.paginate(Bucket=self.bucket_name, Prefix=list_prefix):
            for obj in page.get("Contents", []):
                name = obj["Key"][len(list_prefix):]
                if not name or "/" in name:
                    continue
                yield StoredAsset(name=name, modified_at=obj["LastModified"])

    def delete(self, name: str) -> None:
        self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._key(name))
