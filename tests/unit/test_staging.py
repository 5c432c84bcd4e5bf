"""
Unit tests for staging stores
"""

import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock
from botocore.exceptions import ClientError
from core.exceptions import StagingError
from ingestion.staging import LocalStagingStore, S3StagingStore, build_staging_store


class TestLocalStagingStore:

    @pytest.mark.asyncio
    async def test_put_fetch_delete(self, tmp_path):
        store = LocalStagingStore(tmp_path / "staging")
        source = tmp_path / "AM.dat"
        source.write_bytes(b"AM|1|||W1AW\n")

        location = await store.put("job-1", "AM.dat", source)
        fetched = await store.fetch("job-1", "AM.dat", tmp_path / "worker" / "AM.dat")

        assert location.endswith("job-1/AM.dat")
        assert fetched.read_bytes() == b"AM|1|||W1AW\n"

        await store.delete("job-1", ["AM.dat", "EN.dat"])

        assert not (tmp_path / "staging" / "job-1").exists()

    @pytest.mark.asyncio
    async def test_fetch_missing_raises(self, tmp_path):
        store = LocalStagingStore(tmp_path / "staging")

        with pytest.raises(StagingError) as exc_info:
            await store.fetch("job-1", "EN.dat", tmp_path / "EN.dat")

        assert exc_info.value.context["operation"] == "fetch"


class TestS3StagingStore:

    @pytest.mark.asyncio
    async def test_keys_use_prefix_and_job(self, tmp_path):
        client = MagicMock()
        store = S3StagingStore("fcc-bucket", "staging/", client)

        location = await store.put("job-1", "AM.dat", tmp_path / "AM.dat")
        await store.fetch("job-1", "AM.dat", tmp_path / "out" / "AM.dat")
        await store.delete("job-1", ["AM.dat", "EN.dat"])

        assert location == "s3://fcc-bucket/staging/job-1/AM.dat"
        client.upload_file.assert_called_once_with(str(tmp_path / "AM.dat"), "fcc-bucket", "staging/job-1/AM.dat")
        client.download_file.assert_called_once_with("fcc-bucket", "staging/job-1/AM.dat", str(tmp_path / "out" / "AM.dat"))
        client.delete_objects.assert_called_once_with(
            Bucket="fcc-bucket",
            Delete={"Objects": [{"Key": "staging/job-1/AM.dat"}, {"Key": "staging/job-1/EN.dat"}], "Quiet": True},
        )

    @pytest.mark.asyncio
    async def test_client_error_wrapped(self, tmp_path):
        client = MagicMock()
        client.download_file.side_effect = ClientError(
            {"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject"
        )
        store = S3StagingStore("fcc-bucket", "", client)

        with pytest.raises(StagingError) as exc_info:
            await store.fetch("job-1", "AM.dat", tmp_path / "AM.dat")

        assert exc_info.value.context["key"] == "job-1/AM.dat"


class TestBuildStagingStore:

    def test_local(self, tmp_path):
        config = SimpleNamespace(STAGING_BACKEND="local", STAGING_DIR=str(tmp_path))

        assert isinstance(build_staging_store(config), LocalStagingStore)

    def test_s3_with_client(self):
        config = SimpleNamespace(STAGING_BACKEND="S3", S3_BUCKET="fcc-bucket", S3_PREFIX="p/")

        store = build_staging_store(config, client=MagicMock())

        assert isinstance(store, S3StagingStore)
        assert store.bucket == "fcc-bucket"

    def test_s3_requires_bucket(self):
        config = SimpleNamespace(STAGING_BACKEND="s3", S3_BUCKET=None, S3_PREFIX="")

        with pytest.raises(ValueError):
            build_staging_store(config)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_staging_store(SimpleNamespace(STAGING_BACKEND="ftp"))
