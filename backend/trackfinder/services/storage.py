# backend/trackfinder/services/storage.py
from __future__ import annotations

import logging
import mimetypes
import re
import time
import uuid
from pathlib import Path
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from trackfinder.core.config import Settings
from trackfinder.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

_AUDIO_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
}

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStore(Protocol):
    """Object store for audio, artwork and preview payloads."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Durably write the payload and return its public URL."""

    def delete(self, key: str) -> None:
        """Release the object. Missing objects are not an error."""

    def exists(self, key: str) -> bool:
        ...

    def public_url(self, key: str) -> str:
        ...


def _clean_key(key: str) -> str:
    return key.strip().lstrip("/").strip("'").strip('"')


def guess_content_type(filename: str) -> str:
    ext = Path(filename).suffix.lower()
    if ext in _AUDIO_TYPES:
        return _AUDIO_TYPES[ext]
    guess, _ = mimetypes.guess_type(filename)
    return guess or "application/octet-stream"


def build_blob_key(kind: str, filename: str) -> str:
    """
    tracks/uploads/1700000000000_1a2b3c4d_my_song.mp3
    """
    name = _UNSAFE.sub("_", Path(filename or "upload").name).strip("._") or "upload"
    stamp = int(time.time() * 1000)
    return f"{kind}/uploads/{stamp}_{uuid.uuid4().hex[:8]}_{name}"


class LocalBlobStore:
    """
    Dev storage: files under a local directory, served elsewhere at public_base_url.
    """

    def __init__(self, root: str | Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / _clean_key(key)).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Local blob write failed: key={key} err={e}")
            raise StoreUnavailable() from e
        logger.debug(f"Stored blob key={key} type={content_type} size={len(data)}")
        return self.public_url(key)

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Local blob delete failed: key={key} err={e}")
            raise StoreUnavailable() from e

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{_clean_key(key)}"


class R2BlobStore:
    """
    Cloudflare R2 (S3 compatible) storage through boto3.
    R2_PREFIX is applied to every key, for reads and writes alike.
    """

    def __init__(self, settings: Settings, client=None):
        settings.validate_r2_or_raise()
        self.bucket = settings.r2_bucket
        self.prefix = settings.r2_prefix.strip().strip("/")
        self.public_base_url = settings.public_base_url.rstrip("/")
        self._client = client or boto3.client(
            "s3",
            endpoint_url=settings.r2_endpoint,
            aws_access_key_id=settings.r2_access_key_id,
            aws_secret_access_key=settings.r2_secret_access_key,
            region_name=settings.r2_region,
        )

    def normalize_key(self, key: str) -> str:
        clean = _clean_key(key)
        return f"{self.prefix}/{clean}" if self.prefix else clean

    def put(self, key: str, data: bytes, content_type: str) -> str:
        full_key = self.normalize_key(key)
        logger.info(f"R2 upload: bucket={self.bucket} key={full_key}")
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=full_key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"R2 upload failed: key={full_key} err={e}")
            raise StoreUnavailable() from e
        return self.public_url(key)

    def delete(self, key: str) -> None:
        full_key = self.normalize_key(key)
        logger.info(f"R2 delete: bucket={self.bucket} key={full_key}")
        try:
            self._client.delete_object(Bucket=self.bucket, Key=full_key)
        except ClientError as e:
            if e.response["Error"]["Code"] == "NoSuchKey":
                return
            logger.error(f"R2 delete failed: key={full_key} err={e}")
            raise StoreUnavailable() from e
        except BotoCoreError as e:
            logger.error(f"R2 delete failed: key={full_key} err={e}")
            raise StoreUnavailable() from e

    def exists(self, key: str) -> bool:
        full_key = self.normalize_key(key)
        try:
            self._client.head_object(Bucket=self.bucket, Key=full_key)
        except ClientError as e:
            if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.error(f"R2 head failed: key={full_key} err={e}")
            raise StoreUnavailable() from e
        except BotoCoreError as e:
            logger.error(f"R2 head failed: key={full_key} err={e}")
            raise StoreUnavailable() from e
        return True

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{self.normalize_key(key)}"


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.r2_required():
        return R2BlobStore(settings)
    return LocalBlobStore(settings.local_storage_dir, settings.public_base_url)
