"""
Durable staging of extracted ULS files between invocations.

A continuation may land on a different worker with an empty scratch disk,
so the extracted AM.dat / EN.dat are copied here after extraction and
fetched back on every continuation. Objects live under ``{job_id}/{name}``.
"""

import asyncio
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from core.exceptions import StagingError
import logging

logger = logging.getLogger(__name__)


class StagingStore(ABC):
    """Intermediate durable store for per-job source files"""

    @abstractmethod
    async def put(self, job_id: str, name: str, local_path: Path) -> str:
        """Copy a local file into the store; returns its location"""

    @abstractmethod
    async def fetch(self, job_id: str, name: str, dest: Path) -> Path:
        """Copy a staged file to dest (a file path) and return dest"""

    @abstractmethod
    async def delete(self, job_id: str, names: Iterable[str]) -> None:
        """Remove staged files; missing files are ignored"""


class LocalStagingStore(StagingStore):
    """Staging on a shared directory (volume mounted by every worker)"""

    def __init__(self, root):
        self.root = Path(root)

    def _path(self, job_id: str, name: str) -> Path:
        return self.root / job_id / name

    async def put(self, job_id: str, name: str, local_path: Path) -> str:
        target = self._path(job_id, name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, local_path, target)
        except OSError as e:
            raise StagingError(
                f"Failed to stage {name}",
                context={"job_id": job_id, "name": name, "operation": "put", "path": str(target)},
                original_exception=e
            )
        logger.info(f"[{job_id}] Staged {name} at {target}")
        return str(target)

    async def fetch(self, job_id: str, name: str, dest: Path) -> Path:
        source = self._path(job_id, name)
        dest = Path(dest)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, source, dest)
        except OSError as e:
            raise StagingError(
                f"Failed to fetch staged {name}",
                context={"job_id": job_id, "name": name, "operation": "fetch", "path": str(source)},
                original_exception=e
            )
        return dest

    async def delete(self, job_id: str, names: Iterable[str]) -> None:
        for name in names:
            path = self._path(job_id, name)
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StagingError(
                    f"Failed to delete staged {name}",
                    context={"job_id": job_id, "name": name, "operation": "delete"},
                    original_exception=e
                )
        job_dir = self.root / job_id
        if job_dir.is_dir() and not any(job_dir.iterdir()):
            job_dir.rmdir()


class S3StagingStore(StagingStore):
    """Staging in an S3 bucket; boto3 calls run in a worker thread"""

    def __init__(self, bucket: str, prefix: str = "", client=None):
        self.bucket = bucket
        self.prefix = prefix
        self.s3 = client

    def _key(self, job_id: str, name: str) -> str:
        return f"{self.prefix}{job_id}/{name}"

    async def put(self, job_id: str, name: str, local_path: Path) -> str:
        key = self._key(job_id, name)
        try:
            await asyncio.to_thread(self.s3.upload_file, str(local_path), self.bucket, key)
        except (BotoCoreError, ClientError) as e:
            raise StagingError(
                f"Failed to upload {name} to s3://{self.bucket}/{key}",
                context={"job_id": job_id, "name": name, "operation": "put", "key": key},
                original_exception=e
            )
        logger.info(f"[{job_id}] Staged {name} at s3://{self.bucket}/{key}")
        return f"s3://{self.bucket}/{key}"

    async def fetch(self, job_id: str, name: str, dest: Path) -> Path:
        key = self._key(job_id, name)
        dest = Path(dest)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(self.s3.download_file, self.bucket, key, str(dest))
        except (BotoCoreError, ClientError, OSError) as e:
            raise StagingError(
                f"Failed to fetch s3://{self.bucket}/{key}",
                context={"job_id": job_id, "name": name, "operation": "fetch", "key": key},
                original_exception=e
            )
        return dest

    async def delete(self, job_id: str, names: Iterable[str]) -> None:
        objects = [{"Key": self._key(job_id, name)} for name in names]
        if not objects:
            return
        try:
            await asyncio.to_thread(
                self.s3.delete_objects,
                Bucket=self.bucket,
                Delete={"Objects": objects, "Quiet": True},
            )
        except (BotoCoreError, ClientError) as e:
            raise StagingError(
                f"Failed to delete staged files for job {job_id}",
                context={"job_id": job_id, "operation": "delete", "bucket": self.bucket},
                original_exception=e
            )


def build_staging_store(config, client: Optional[object] = None) -> StagingStore:
    """Pick the staging backend from settings (STAGING_BACKEND)"""
    backend = config.STAGING_BACKEND.lower()

    if backend == "local":
        return LocalStagingStore(config.STAGING_DIR)

    if backend == "s3":
        if not config.S3_BUCKET:
            raise ValueError("S3_BUCKET must be set when STAGING_BACKEND=s3")
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=config.S3_ENDPOINT_URL,
                region_name=config.AWS_REGION,
            )
        return S3StagingStore(config.S3_BUCKET, config.S3_PREFIX, client)

    raise ValueError(f"Unknown STAGING_BACKEND: {config.STAGING_BACKEND}")
