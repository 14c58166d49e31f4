import io
import logging
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Any failure talking to the object store."""


def _session():
    return boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )


def get_s3_client():
    """
    SDK client for server-side upload/download.
    """
    return _session().client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def get_presign_client():
    """
    Separate client for generating presigned URLs that browsers will call.
    Uses S3_PUBLIC_ENDPOINT so the URL host matches what the client reaches.
    """
    return _session().client(
        "s3",
        endpoint_url=settings.S3_PUBLIC_ENDPOINT,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",  # ensures AWS4 signing
        ),
    )


def _is_missing(err: ClientError) -> bool:
    code = str(err.response.get("Error", {}).get("Code", ""))
    return code in {"404", "NoSuchKey", "NotFound"}


class ObjectStorage:
    """
    The operations the pipeline needs from the object store:
    download, upload, remove and URL derivation.
    """

    def __init__(self, client=None, presign_client=None):
        self._client = client
        self._presign_client = presign_client

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    @property
    def presign_client(self):
        if self._presign_client is None:
            self._presign_client = get_presign_client()
        return self._presign_client

    def download(self, bucket: str, key: str) -> bytes:
        try:
            obj = self.client.get_object(Bucket=bucket, Key=key)
            return obj["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"download {bucket}/{key} failed: {e}") from e

    def exists(self, bucket: str, key: str) -> bool:
        try:
            self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return False
            raise StorageError(f"head {bucket}/{key} failed: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"head {bucket}/{key} failed: {e}") from e
        return True

    def upload(self, bucket: str, key: str, data: bytes, content_type: str | None = None, *, upsert: bool = False):
        """
        Upload bytes under key. Without upsert an existing object is an error.
        Returns only once the store has acknowledged the write.
        """
        if not upsert and self.exists(bucket, key):
            raise StorageError(f"upload {bucket}/{key} failed: object already exists")
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self.client.upload_fileobj(io.BytesIO(data), bucket, key, ExtraArgs=extra or None)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"upload {bucket}/{key} failed: {e}") from e
        logger.info("uploaded %s/%s (%d bytes)", bucket, key, len(data))

    def remove(self, bucket: str, keys: list[str]):
        if not keys:
            return
        try:
            resp = self.client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"remove from {bucket} failed: {e}") from e
        errors = resp.get("Errors") or []
        if errors:
            failed = ", ".join(f"{err.get('Key')} ({err.get('Code')})" for err in errors)
            raise StorageError(f"remove from {bucket} failed: {failed}")

    def public_url(self, bucket: str, key: str) -> str:
        base = settings.S3_PUBLIC_ENDPOINT.rstrip("/")
        return f"{base}/{bucket}/{quote(key)}"

    def signed_url(self, bucket: str, key: str, expires: int | None = None) -> str:
        try:
            return self.presign_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
                HttpMethod="GET",
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"presign {bucket}/{key} failed: {e}") from e
