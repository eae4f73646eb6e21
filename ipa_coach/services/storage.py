"""Object storage for recordings and reference audio, plus the audio source built on it."""

import asyncio
import logging
from typing import Optional
from uuid import UUID

import boto3
import httpx
import numpy as np
from botocore.config import Config
from botocore.exceptions import ClientError

from ipa_coach.config import get_settings
from ipa_coach.services.audio import decode_wav
from ipa_coach.services.interfaces import AudioSource

settings = get_settings()
logger = logging.getLogger(__name__)


class StorageService:
    """Service for managing object storage (MinIO/S3)."""

    def __init__(self, bucket: Optional[str] = None, client=None):
        self._client = client
        self._bucket = bucket or settings.minio_bucket

    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            endpoint_url = f"{'https' if settings.minio_use_ssl else 'http'}://{settings.minio_endpoint}"
            self._client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=settings.minio_access_key,
                aws_secret_access_key=settings.minio_secret_key,
                config=Config(signature_version="s3v4"),
            )
            self._ensure_bucket()
        return self._client

    def _ensure_bucket(self):
        """Create bucket if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self._bucket)
        except ClientError:
            self.client.create_bucket(Bucket=self._bucket)

    def reference_key(self, word_id: UUID, dialect: str) -> str:
        """Storage key of the reference pronunciation of a word."""
        return f"{settings.reference_audio_prefix}/{dialect}/{word_id}.wav"

    def download(self, key: str) -> bytes:
        """Download an object from storage."""
        response = self.client.get_object(Bucket=self._bucket, Key=key)
        return response["Body"].read()

    def health_check(self) -> bool:
        """Check if storage is accessible."""
        try:
            self.client.head_bucket(Bucket=self._bucket)
            return True
        except Exception:
            return False


class StorageAudioSource(AudioSource):
    """
    Loads recordings over HTTP or from object storage.

    URLs with an http(s) scheme are downloaded with httpx; anything else is
    treated as an object key in the media bucket. Reference pronunciations
    live at reference/<dialect>/<word_id>.wav.
    """

    def __init__(
        self,
        storage: StorageService,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.storage = storage
        self._http_client = http_client

    async def _download_url(self, url: str) -> bytes:
        if self._http_client is not None:
            response = await self._http_client.get(url, follow_redirects=True)
            response.raise_for_status()
            return response.content

        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            response = await client.get(url, follow_redirects=True)
            response.raise_for_status()
            return response.content

    async def fetch(self, url: str) -> np.ndarray:
        if url.startswith(("http://", "https://")):
            content = await self._download_url(url)
        else:
            # boto3 is blocking; keep the event loop free
            content = await asyncio.to_thread(self.storage.download, url)

        samples = decode_wav(content)
        logger.info(f"Fetched {len(samples)} samples from {url}")
        return samples

    async def lookup_reference(self, word_id: UUID, dialect: str) -> np.ndarray:
        key = self.storage.reference_key(word_id, dialect)
        content = await asyncio.to_thread(self.storage.download, key)
        return decode_wav(content)


# Singleton instance
storage_service = StorageService()
