from contextlib import AsyncExitStack
from typing import AsyncIterator, Optional

import aioboto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
)
from loguru import logger

from fileshelf.errors import (
    FileShelfError,
    InitializationFailure,
    ListError,
    NotFoundError,
    StorageIOError,
)
from fileshelf.storage.backend import (
    CHUNK_SIZE,
    FileDescriptor,
    FileDownload,
    StoreEntry,
    is_plain_name,
)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}
_AUTH_CODES = {"403", "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"}


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def _error_message(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Message") or str(e)
    return str(e)


class S3Storage:
    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        prefix: str = "uploads",
        endpoint_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.region = region
        self.prefix = prefix.strip("/")
        self.endpoint_url = endpoint_url
        self._session = aioboto3.Session()

    def _get_root_prefix(self) -> str:
        return f"{self.prefix}/" if self.prefix else ""

    def _get_key(self, name: str) -> str:
        return f"{self._get_root_prefix()}{name}"

    def _get_client_kwargs(self) -> dict:
        kwargs = {"region_name": self.region}
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs

    def _client(self):
        return self._session.client("s3", **self._get_client_kwargs())

    def _fail(self, title: str, message: str, hints: list[str]) -> InitializationFailure:
        hints = hints + [f"Bucket: {self.bucket}"]
        if self.endpoint_url:
            hints.append(f"Endpoint: {self.endpoint_url}")
        return InitializationFailure(title, message, hints)

    async def initialize(self) -> None:
        await self.validate_connection()

    async def validate_connection(self) -> None:
        """Check the bucket is reachable, creating it when it does not exist."""
        async with self._client() as s3:
            try:
                await s3.head_bucket(Bucket=self.bucket)
                logger.info(f"Connected to s3://{self.bucket}/{self.prefix}")
                return
            except ClientError as e:
                code = _error_code(e)
                if code in _AUTH_CODES:
                    raise self._fail(
                        "S3 Authentication Failed",
                        _error_message(e),
                        [
                            "Check AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY",
                            "Verify the credentials can access the bucket",
                        ],
                    ) from e
                if code not in _MISSING_BUCKET_CODES:
                    raise self._fail(
                        "S3 Connection Failed", _error_message(e), []
                    ) from e
            except NoCredentialsError as e:
                raise self._fail(
                    "S3 Authentication Failed",
                    str(e),
                    ["Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY"],
                ) from e
            except EndpointConnectionError as e:
                if self.endpoint_url:
                    hints = [f"Is LocalStack/MinIO running at {self.endpoint_url}?"]
                else:
                    hints = [
                        "Check network connectivity to S3",
                        "FILESHELF_S3_ENDPOINT is only needed for LocalStack/MinIO",
                    ]
                raise self._fail("S3 Connection Failed", str(e), hints) from e
            except BotoCoreError as e:
                raise self._fail("S3 Connection Failed", str(e), []) from e

            logger.info(f"Bucket {self.bucket} not found, creating it")
            try:
                if self.region == "us-east-1":
                    await s3.create_bucket(Bucket=self.bucket)
                else:
                    await s3.create_bucket(
                        Bucket=self.bucket,
                        CreateBucketConfiguration={"LocationConstraint": self.region},
                    )
            except (ClientError, BotoCoreError) as e:
                raise self._fail(
                    "S3 Bucket Creation Failed",
                    _error_message(e),
                    [f"Create it manually: aws s3 mb s3://{self.bucket}"],
                ) from e

    async def root_exists(self) -> bool:
        async with self._client() as s3:
            try:
                await s3.head_bucket(Bucket=self.bucket)
            except ClientError as e:
                if _error_code(e) in _MISSING_BUCKET_CODES:
                    return False
                raise ListError(f"Could not reach bucket {self.bucket}: {_error_message(e)}") from e
            except BotoCoreError as e:
                raise ListError(f"Could not reach bucket {self.bucket}: {e}") from e
        return True

    async def list_entries(self) -> list[StoreEntry]:
        root = self._get_root_prefix()
        entries = []
        try:
            async with self._client() as s3:
                paginator = s3.get_paginator("list_objects_v2")
                async for page in paginator.paginate(
                    Bucket=self.bucket, Prefix=root, Delimiter="/"
                ):
                    for obj in page.get("Contents", []):
                        name = obj["Key"][len(root):]
                        if name:
                            entries.append(
                                StoreEntry(
                                    name,
                                    size_bytes=obj.get("Size"),
                                    created_at=obj.get("LastModified"),
                                )
                            )
                    for prefix in page.get("CommonPrefixes", []):
                        name = prefix["Prefix"][len(root):].rstrip("/")
                        if name:
                            entries.append(StoreEntry(name, is_dir=True))
        except (ClientError, BotoCoreError) as e:
            raise ListError(
                f"Could not list s3://{self.bucket}/{root}: {_error_message(e)}"
            ) from e

        entries.sort(key=lambda entry: entry.name)
        return entries

    async def _head_object(self, s3, name: str) -> dict:
        try:
            return await s3.head_object(Bucket=self.bucket, Key=self._get_key(name))
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise NotFoundError(name) from e
            raise StorageIOError(name, _error_message(e)) from e
        except BotoCoreError as e:
            raise StorageIOError(name, str(e)) from e

    async def describe(self, name: str) -> FileDescriptor:
        if not is_plain_name(name):
            raise NotFoundError(name)
        async with self._client() as s3:
            head = await self._head_object(s3, name)
        return FileDescriptor(
            name=name,
            size_bytes=head["ContentLength"],
            created_at=head["LastModified"],
        )

    async def exists(self, name: str) -> bool:
        try:
            await self.describe(name)
            return True
        except NotFoundError:
            return False

    async def delete(self, name: str) -> None:
        key = self._get_key(name)
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(name, _error_message(e)) from e
        logger.debug(f"Deleted s3://{self.bucket}/{key}")

    async def open_read(self, name: str) -> FileDownload:
        if not is_plain_name(name):
            raise NotFoundError(name)

        stack = AsyncExitStack()
        try:
            s3 = await stack.enter_async_context(self._client())
        except BotoCoreError as e:
            raise StorageIOError(name, str(e)) from e
        try:
            head = await self._head_object(s3, name)
            try:
                response = await s3.get_object(Bucket=self.bucket, Key=self._get_key(name))
            except ClientError as e:
                if _error_code(e) in _NOT_FOUND_CODES:
                    raise NotFoundError(name) from e
                raise StorageIOError(name, _error_message(e)) from e
            except BotoCoreError as e:
                raise StorageIOError(name, str(e)) from e
        except FileShelfError:
            await stack.aclose()
            raise

        return FileDownload(
            name, head.get("ContentLength"), self._iter_body(name, stack, response["Body"])
        )

    async def _iter_body(
        self, name: str, stack: AsyncExitStack, body
    ) -> AsyncIterator[bytes]:
        try:
            async with body as stream:
                while True:
                    chunk = await stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        except (ClientError, BotoCoreError) as e:
            raise StorageIOError(name, _error_message(e)) from e
        finally:
            await stack.aclose()
