from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from fileshelf.errors import (
    InitializationFailure,
    ListError,
    NotFoundError,
    StorageIOError,
)
from fileshelf.file_operations import FileOperations
from fileshelf.selector import BackendSelection, InitializationStatus
from fileshelf.storage.backend import FileDescriptor, StorageBackend, StoreEntry
from fileshelf.storage.s3 import S3Storage


class AsyncContextManager:
    def __init__(self, mock_obj):
        self.mock_obj = mock_obj

    async def __aenter__(self):
        return self.mock_obj

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


def _mock_paginator(pages):
    async def mock_paginate(*args, **kwargs):
        for page in pages:
            yield page

    paginator = MagicMock()
    paginator.paginate = MagicMock(side_effect=mock_paginate)
    return paginator


@pytest.fixture
def s3_storage():
    return S3Storage(bucket="test-bucket", region="us-east-1", prefix="uploads")


@pytest.fixture
def mock_s3(s3_storage):
    mock = AsyncMock()
    with patch.object(
        s3_storage._session, "client", return_value=AsyncContextManager(mock)
    ):
        yield mock


class TestS3StorageInit:
    def test_creates_with_required_params(self):
        storage = S3Storage(bucket="mybucket")
        assert storage.bucket == "mybucket"
        assert storage.region == "us-east-1"
        assert storage.prefix == "uploads"
        assert storage.endpoint_url is None

    def test_strips_slashes_from_prefix(self):
        storage = S3Storage(bucket="mybucket", prefix="/files/")
        assert storage.prefix == "files"
        assert storage._get_key("a.txt") == "files/a.txt"

    def test_empty_prefix_addresses_bucket_root(self):
        storage = S3Storage(bucket="mybucket", prefix="")
        assert storage._get_key("a.txt") == "a.txt"


class TestS3StorageValidateConnection:
    @pytest.mark.asyncio
    async def test_validates_existing_bucket(self, s3_storage, mock_s3):
        await s3_storage.initialize()

        mock_s3.head_bucket.assert_called_once_with(Bucket="test-bucket")
        mock_s3.create_bucket.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_bucket_when_missing(self, s3_storage, mock_s3):
        mock_s3.head_bucket = AsyncMock(side_effect=_client_error("404", "HeadBucket"))

        await s3_storage.validate_connection()

        mock_s3.create_bucket.assert_called_once_with(Bucket="test-bucket")

    @pytest.mark.asyncio
    async def test_creates_bucket_with_location_for_non_us_east_1(self):
        storage = S3Storage(bucket="test-bucket", region="eu-west-1")
        mock_s3 = AsyncMock()
        mock_s3.head_bucket = AsyncMock(side_effect=_client_error("404", "HeadBucket"))

        with patch.object(
            storage._session, "client", return_value=AsyncContextManager(mock_s3)
        ):
            await storage.validate_connection()

        mock_s3.create_bucket.assert_called_once_with(
            Bucket="test-bucket",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
        )

    @pytest.mark.asyncio
    async def test_raises_on_auth_failure(self, s3_storage, mock_s3):
        mock_s3.head_bucket = AsyncMock(side_effect=_client_error("403", "HeadBucket"))

        with pytest.raises(InitializationFailure) as exc_info:
            await s3_storage.validate_connection()

        assert exc_info.value.title == "S3 Authentication Failed"
        assert "AWS_ACCESS_KEY_ID" in exc_info.value.describe()
        assert "test-bucket" in exc_info.value.describe()

    @pytest.mark.asyncio
    async def test_raises_on_connection_error_with_endpoint(self):
        storage = S3Storage(bucket="test-bucket", endpoint_url="http://localhost:4566")
        mock_s3 = AsyncMock()
        mock_s3.head_bucket = AsyncMock(
            side_effect=EndpointConnectionError(endpoint_url="http://localhost:4566")
        )

        with patch.object(
            storage._session, "client", return_value=AsyncContextManager(mock_s3)
        ):
            with pytest.raises(InitializationFailure) as exc_info:
                await storage.validate_connection()

        assert exc_info.value.title == "S3 Connection Failed"
        assert "LocalStack" in exc_info.value.describe()
        assert "http://localhost:4566" in exc_info.value.describe()

    @pytest.mark.asyncio
    async def test_raises_on_connection_error_without_endpoint(self, s3_storage, mock_s3):
        mock_s3.head_bucket = AsyncMock(
            side_effect=EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")
        )

        with pytest.raises(InitializationFailure) as exc_info:
            await s3_storage.validate_connection()

        assert "only needed for LocalStack/MinIO" in exc_info.value.describe()

    @pytest.mark.asyncio
    async def test_raises_on_bucket_creation_failure(self, s3_storage, mock_s3):
        mock_s3.head_bucket = AsyncMock(side_effect=_client_error("404", "HeadBucket"))
        mock_s3.create_bucket = AsyncMock(
            side_effect=_client_error("AccessDenied", "CreateBucket")
        )

        with pytest.raises(InitializationFailure) as exc_info:
            await s3_storage.validate_connection()

        assert exc_info.value.title == "S3 Bucket Creation Failed"
        assert "aws s3 mb" in exc_info.value.describe()


class TestS3StorageRootExists:
    @pytest.mark.asyncio
    async def test_true_when_bucket_exists(self, s3_storage, mock_s3):
        assert await s3_storage.root_exists() is True

    @pytest.mark.asyncio
    async def test_false_when_bucket_missing(self, s3_storage, mock_s3):
        mock_s3.head_bucket = AsyncMock(
            side_effect=_client_error("NoSuchBucket", "HeadBucket")
        )
        assert await s3_storage.root_exists() is False

    @pytest.mark.asyncio
    async def test_raises_list_error_on_other_failures(self, s3_storage, mock_s3):
        mock_s3.head_bucket = AsyncMock(side_effect=_client_error("500", "HeadBucket"))

        with pytest.raises(ListError):
            await s3_storage.root_exists()


class TestS3StorageListEntries:
    @pytest.mark.asyncio
    async def test_returns_empty_list_when_no_objects(self, s3_storage, mock_s3):
        mock_s3.get_paginator = MagicMock(return_value=_mock_paginator([{}]))

        assert await s3_storage.list_entries() == []

    @pytest.mark.asyncio
    async def test_maps_objects_and_prefixes_to_entries(self, s3_storage, mock_s3):
        paginator = _mock_paginator(
            [
                {
                    "Contents": [
                        {"Key": "uploads/"},
                        {"Key": "uploads/b.txt"},
                        {"Key": "uploads/.hidden"},
                    ],
                    "CommonPrefixes": [{"Prefix": "uploads/sub/"}],
                },
                {"Contents": [{"Key": "uploads/a.txt"}]},
            ]
        )
        mock_s3.get_paginator = MagicMock(return_value=paginator)

        entries = await s3_storage.list_entries()

        assert entries == [
            StoreEntry(".hidden"),
            StoreEntry("a.txt"),
            StoreEntry("b.txt"),
            StoreEntry("sub", is_dir=True),
        ]
        call_kwargs = paginator.paginate.call_args.kwargs
        assert call_kwargs == {
            "Bucket": "test-bucket",
            "Prefix": "uploads/",
            "Delimiter": "/",
        }

    @pytest.mark.asyncio
    async def test_raises_list_error_on_client_error(self, s3_storage, mock_s3):
        async def failing_paginate(*args, **kwargs):
            raise _client_error("AccessDenied", "ListObjectsV2")
            yield

        paginator = MagicMock()
        paginator.paginate = failing_paginate
        mock_s3.get_paginator = MagicMock(return_value=paginator)

        with pytest.raises(ListError):
            await s3_storage.list_entries()


class TestS3StorageDescribe:
    @pytest.mark.asyncio
    async def test_reports_size_and_last_modified(self, s3_storage, mock_s3):
        modified = datetime(2024, 2, 7, 12, 0, tzinfo=timezone.utc)
        mock_s3.head_object = AsyncMock(
            return_value={"ContentLength": 10, "LastModified": modified}
        )

        descriptor = await s3_storage.describe("a.txt")

        assert descriptor.size_bytes == 10
        assert descriptor.created_at == modified
        mock_s3.head_object.assert_called_once_with(
            Bucket="test-bucket", Key="uploads/a.txt"
        )

    @pytest.mark.asyncio
    async def test_raises_not_found_on_404(self, s3_storage, mock_s3):
        mock_s3.head_object = AsyncMock(side_effect=_client_error("404"))

        with pytest.raises(NotFoundError):
            await s3_storage.describe("missing.txt")

        assert await s3_storage.exists("missing.txt") is False


class TestS3StorageDelete:
    @pytest.mark.asyncio
    async def test_deletes_object(self, s3_storage, mock_s3):
        await s3_storage.delete("a.txt")

        mock_s3.delete_object.assert_called_once_with(
            Bucket="test-bucket", Key="uploads/a.txt"
        )

    @pytest.mark.asyncio
    async def test_raises_storage_io_error_on_failure(self, s3_storage, mock_s3):
        mock_s3.delete_object = AsyncMock(
            side_effect=_client_error("AccessDenied", "DeleteObject")
        )

        with pytest.raises(StorageIOError) as exc_info:
            await s3_storage.delete("a.txt")

        assert exc_info.value.message == "AccessDenied message"


class TestS3StorageOpenRead:
    @pytest.mark.asyncio
    async def test_streams_object_body(self, s3_storage, mock_s3):
        mock_body = AsyncMock()
        mock_body.read = AsyncMock(side_effect=[b"hello ", b"world", b""])
        mock_s3.head_object = AsyncMock(return_value={"ContentLength": 11})
        mock_s3.get_object = AsyncMock(
            return_value={"Body": AsyncContextManager(mock_body)}
        )

        download = await s3_storage.open_read("a.txt")

        assert download.size_bytes == 11
        assert await download.read_all() == b"hello world"

    @pytest.mark.asyncio
    async def test_raises_not_found_before_transfer(self, s3_storage, mock_s3):
        mock_s3.head_object = AsyncMock(side_effect=_client_error("404"))

        with pytest.raises(NotFoundError):
            await s3_storage.open_read("missing.txt")

        mock_s3.get_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_raises_storage_io_error_when_transfer_fails(self, s3_storage, mock_s3):
        mock_s3.head_object = AsyncMock(return_value={"ContentLength": 3})
        mock_s3.get_object = AsyncMock(
            side_effect=_client_error("InternalError", "GetObject")
        )

        with pytest.raises(StorageIOError):
            await s3_storage.open_read("a.txt")

    @pytest.mark.asyncio
    async def test_rejects_nested_names(self, s3_storage, mock_s3):
        with pytest.raises(NotFoundError):
            await s3_storage.open_read("sub/a.txt")

        mock_s3.head_object.assert_not_called()


class TestS3StorageListFiles:
    @pytest.mark.asyncio
    async def test_uses_listing_metadata_without_head_requests(
        self, s3_storage, mock_s3
    ):
        modified = datetime(2024, 2, 7, 12, 0, tzinfo=timezone.utc)
        paginator = _mock_paginator(
            [
                {
                    "Contents": [
                        {"Key": "uploads/a.txt", "Size": 10, "LastModified": modified},
                        {"Key": "uploads/.hidden", "Size": 1, "LastModified": modified},
                        {"Key": "uploads/b.txt", "Size": 0, "LastModified": modified},
                    ],
                    "CommonPrefixes": [{"Prefix": "uploads/sub/"}],
                }
            ]
        )
        mock_s3.get_paginator = MagicMock(return_value=paginator)
        selection = BackendSelection(
            StorageBackend.REMOTE, s3_storage, InitializationStatus(True)
        )

        files = await FileOperations(selection).list_files()

        assert files == [
            FileDescriptor("a.txt", 10, modified),
            FileDescriptor("b.txt", 0, modified),
        ]
        mock_s3.head_object.assert_not_called()
