"""
Storage Service
Handles file storage - supports Google Cloud Storage, S3, and local filesystem.
Every object is addressed as (bucket, path) and served through the API proxy
at /files/{bucket}/{path}.
"""

import asyncio
import logging
import time
import uuid
from pathlib import Path
from typing import Optional, Tuple

import httpx

from fabricshoot.core.config import settings

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "audio/mpeg": "mp3",
}


def build_object_name(user_id: str, suffix: str, content_type: str = "image/png") -> str:
    """Timestamp + random name so concurrent uploads in one job never collide."""
    ext = _EXTENSIONS.get(content_type, "bin")
    return f"{user_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:10]}-{suffix}.{ext}"


class StorageService:
    """Service for file storage operations."""

    def __init__(self):
        # Priority: GCS > Local > S3
        self.use_gcs = settings.USE_GCS
        self.use_local = settings.USE_LOCAL_STORAGE and not self.use_gcs

        if self.use_gcs:
            from google.cloud import storage
            self.gcs_client = storage.Client(project=settings.GCP_PROJECT_ID)
            logger.info("[Storage] Using Google Cloud Storage")

        elif self.use_local:
            self.base_path = Path(settings.LOCAL_STORAGE_PATH)
            self.base_path.mkdir(parents=True, exist_ok=True)
            logger.info(f"[Storage] Using local storage: {self.base_path}")

        else:
            import boto3
            from botocore.config import Config
            self.s3 = boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT or None,
                aws_access_key_id=settings.S3_ACCESS_KEY,
                aws_secret_access_key=settings.S3_SECRET_KEY,
                region_name=settings.S3_REGION,
                config=Config(signature_version="s3v4")
            )
            self.bucket = settings.S3_BUCKET
            logger.info(f"[Storage] Using S3: {self.bucket}")

    def get_public_url(self, bucket: str, path: str) -> str:
        """API proxy URL, identical for all backends."""
        return f"{settings.API_BASE_URL.rstrip('/')}/files/{bucket}/{path}"

    def split_public_url(self, url: str) -> Optional[Tuple[str, str]]:
        """Inverse of get_public_url; None for URLs this service does not own."""
        for prefix in (f"{settings.API_BASE_URL.rstrip('/')}/files/", "/files/"):
            if url.startswith(prefix):
                bucket, _, path = url[len(prefix):].partition("/")
                if bucket and path:
                    return bucket, path
        return None

    async def upload_bytes(self, data: bytes, bucket: str, path: str, content_type: str = "image/png") -> str:
        """Upload bytes and return the public URL."""
        if self.use_gcs:
            await asyncio.to_thread(self._upload_gcs, data, bucket, path, content_type)
        elif self.use_local:
            await asyncio.to_thread(self._upload_local, data, bucket, path)
        else:
            await asyncio.to_thread(self._upload_s3, data, bucket, path, content_type)
        logger.info(f"[Storage] Stored {len(data)} bytes at {bucket}/{path}")
        return self.get_public_url(bucket, path)

    async def upload_generated_image(self, user_id: str, data: bytes, suffix: str = "model",
                                     content_type: str = "image/png") -> str:
        path = build_object_name(user_id, suffix, content_type)
        return await self.upload_bytes(data, settings.BUCKET_GENERATED_IMAGES, path, content_type)

    async def upload_reel_asset(self, user_id: str, reel_id: str, kind: str, data: bytes) -> str:
        """Reel audio is keyed by reel id; regeneration overwrites it."""
        path = f"{user_id}/{reel_id}-{kind}.mp3"
        return await self.upload_bytes(data, settings.BUCKET_REEL_ASSETS, path, "audio/mpeg")

    def _upload_gcs(self, data: bytes, bucket: str, path: str, content_type: str):
        blob = self.gcs_client.bucket(bucket).blob(path)
        blob.upload_from_string(data, content_type=content_type)

    def _upload_local(self, data: bytes, bucket: str, path: str):
        file_path = self.base_path / bucket / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(data)

    def _upload_s3(self, data: bytes, bucket: str, path: str, content_type: str):
        self.s3.put_object(
            Bucket=self.bucket,
            Key=f"{bucket}/{path}",
            Body=data,
            ContentType=content_type
        )

    async def check(self) -> bool:
        """Probe the backend; raises when it is unreachable."""
        if self.use_gcs:
            return await asyncio.to_thread(self.gcs_client.bucket(settings.BUCKET_GENERATED_IMAGES).exists)
        if self.use_local:
            return self.base_path.is_dir()
        await asyncio.to_thread(self.s3.head_bucket, Bucket=self.bucket)
        return True

    async def delete_file(self, bucket: str, path: str):
        """Delete a single file."""
        try:
            if self.use_gcs:
                await asyncio.to_thread(self.gcs_client.bucket(bucket).blob(path).delete)
            elif self.use_local:
                file_path = self.base_path / bucket / path
                if file_path.exists() and file_path.is_file():
                    file_path.unlink()
            else:
                await asyncio.to_thread(self.s3.delete_object, Bucket=self.bucket, Key=f"{bucket}/{path}")
            logger.info(f"[Storage] Deleted file: {bucket}/{path}")
        except Exception as e:
            logger.warning(f"[Storage] Could not delete {bucket}/{path}: {e}")

    async def delete_url(self, url: str):
        location = self.split_public_url(url)
        if location:
            await self.delete_file(*location)

    async def get_file(self, bucket: str, path: str) -> bytes:
        """Get file contents."""
        if self.use_gcs:
            blob = self.gcs_client.bucket(bucket).blob(path)
            return await asyncio.to_thread(blob.download_as_bytes)
        elif self.use_local:
            file_path = self.base_path / bucket / path
            with open(file_path, "rb") as f:
                return f.read()
        else:
            response = await asyncio.to_thread(self.s3.get_object, Bucket=self.bucket, Key=f"{bucket}/{path}")
            return response["Body"].read()

    async def download_bytes(self, url: str) -> bytes:
        """
        Download file bytes from an API proxy URL or any HTTP(S) URL.

        Raises on missing objects and non-2xx responses.
        """
        location = self.split_public_url(url)
        if location:
            return await self.get_file(*location)

        if url.startswith(("http://", "https://")):
            async with httpx.AsyncClient() as client:
                response = await client.get(url, timeout=settings.HTTP_TIMEOUT, follow_redirects=True)
                response.raise_for_status()
                return response.content

        raise ValueError(f"Unsupported URL: {url}")
