"""S3 backend connection."""

import logging
from typing import BinaryIO, List, Optional

from ..addressing import join_path
from ..errors import BackendUnavailable, MissingOptionError
from ..models import BackendEntry

logger = logging.getLogger(__name__)

REQUIRED_OPTIONS = ("s3key", "s3secret", "s3region", "s3bucket", "s3prefix")


class S3Connection:
    """
    Objects in an S3 bucket below a key prefix.

    A single PutObject is atomic, so no temp key is needed. Directories are
    implicit and create_dir is a no-op.
    """

    def __init__(
        self,
        key: str,
        secret: str,
        region: str,
        bucket: str,
        prefix: str = "",
        endpoint_url: Optional[str] = None,
    ):
        """
        Initialize S3 connection.

        Args:
            key: Access key id
            secret: Secret access key
            region: Bucket region
            bucket: Bucket name
            prefix: Key prefix for every path
            endpoint_url: Optional S3-compatible endpoint (MinIO, LocalStack)
        """
        try:
            import boto3
            from botocore.config import Config as BotoConfig
        except ImportError:
            raise ImportError(
                "boto3 required for S3 storage. "
                "Install with: pip install boto3"
            )

        self.bucket = bucket
        self.region = region
        self.prefix = prefix.strip("/") if prefix else ""
        self.endpoint_url = endpoint_url
        self.client = boto3.client(
            "s3",
            aws_access_key_id=key,
            aws_secret_access_key=secret,
            region_name=region,
            endpoint_url=endpoint_url,
            config=BotoConfig(signature_version="s3v4"),
        )

    @classmethod
    def from_options(cls, options: dict) -> "S3Connection":
        """Build from driver options (s3key, s3secret, s3region, s3bucket, s3prefix)."""
        for name in REQUIRED_OPTIONS:
            if name not in options:
                raise MissingOptionError("s3", name)
        return cls(
            key=options["s3key"],
            secret=options["s3secret"],
            region=options["s3region"],
            bucket=options["s3bucket"],
            prefix=options["s3prefix"] or "",
            endpoint_url=options.get("endpoint_url"),
        )

    def _key(self, path: str) -> str:
        return join_path(self.prefix, path)

    def _relative(self, key: str) -> str:
        if self.prefix and key.startswith(self.prefix + "/"):
            return key[len(self.prefix) + 1:]
        return key

    @staticmethod
    def _is_missing(error) -> bool:
        code = str(error.response.get("Error", {}).get("Code", ""))
        return code in ("404", "NoSuchKey", "NotFound")

    def exists(self, path: str) -> bool:
        from botocore.exceptions import BotoCoreError, ClientError
        try:
            self.client.head_object(Bucket=self.bucket, Key=self._key(path))
            return True
        except ClientError as e:
            if self._is_missing(e):
                return False
            raise BackendUnavailable(f"S3 head failed for {path}: {e}") from e
        except BotoCoreError as e:
            raise BackendUnavailable(f"S3 unreachable: {e}") from e

    def write_stream(self, path: str, reader: BinaryIO) -> bool:
        from botocore.exceptions import BotoCoreError, ClientError
        key = self._key(path)
        try:
            self.client.upload_fileobj(reader, self.bucket, key)
        except ClientError as e:
            logger.warning("S3 write refused for %s: %s", key, e)
            return False
        except BotoCoreError as e:
            raise BackendUnavailable(f"S3 unreachable: {e}") from e
        logger.debug("S3 write: s3://%s/%s", self.bucket, key)
        return True

    def read_stream(self, path: str) -> Optional[BinaryIO]:
        from botocore.exceptions import BotoCoreError, ClientError
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as e:
            if self._is_missing(e):
                return None
            raise BackendUnavailable(f"S3 get failed for {path}: {e}") from e
        except BotoCoreError as e:
            raise BackendUnavailable(f"S3 unreachable: {e}") from e
        return response["Body"]

    def delete(self, path: str) -> bool:
        from botocore.exceptions import BotoCoreError, ClientError
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self._key(path))
        except ClientError as e:
            logger.warning("S3 delete failed for %s: %s", path, e)
            return False
        except BotoCoreError as e:
            raise BackendUnavailable(f"S3 unreachable: {e}") from e
        return True

    def create_dir(self, path: str) -> None:
        pass

    def list(self, path: str = "", recursive: bool = False) -> List[BackendEntry]:
        from botocore.exceptions import BotoCoreError, ClientError
        prefix = self._key(path)
        if prefix:
            prefix += "/"
        kwargs = {"Bucket": self.bucket, "Prefix": prefix}
        if not recursive:
            kwargs["Delimiter"] = "/"
        entries = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**kwargs):
                for common in page.get("CommonPrefixes", []):
                    entries.append(BackendEntry(
                        path=self._relative(common["Prefix"].rstrip("/")),
                        type="dir",
                    ))
                for obj in page.get("Contents", []):
                    modified = obj.get("LastModified")
                    entries.append(BackendEntry(
                        path=self._relative(obj["Key"]),
                        type="file",
                        size_bytes=obj.get("Size", 0),
                        timestamp=modified.timestamp() if modified else None,
                    ))
        except (BotoCoreError, ClientError) as e:
            raise BackendUnavailable(f"S3 list failed for {path}: {e}") from e
        return entries

    def object_url(self, path: str, expires_in: Optional[int] = None) -> str:
        """
        Public URL of an object.

        Args:
            path: Relative path
            expires_in: If set, return a presigned GET URL valid for this many seconds

        Returns:
            URL string
        """
        key = self._key(path)
        if expires_in:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
