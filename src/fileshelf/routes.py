import mimetypes
from urllib.parse import quote

from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger

from fileshelf.errors import ListError, NotFoundError, StorageIOError
from fileshelf.file_operations import ClearCacheOutcome, FileOperations
from fileshelf.selector import InitializationStatus

HTTP_MULTI_STATUS = 207


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _handle_list_files(operations: FileOperations) -> JSONResponse:
    try:
        files = await operations.list_files()
    except (ListError, StorageIOError) as e:
        logger.error(f"Error listing files: {e}")
        return _error(500, "Failed to list files")
    return JSONResponse([f.to_dict() for f in files])


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


async def _handle_download_file(operations: FileOperations, filename: str):
    try:
        download = await operations.download(filename)
    except NotFoundError:
        return _error(404, "File not found")
    except StorageIOError as e:
        logger.error(f"Error downloading file: {e}")
        return _error(500, "Failed to download file")

    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    headers = {"Content-Disposition": _content_disposition(filename)}
    if download.size_bytes is not None:
        headers["Content-Length"] = str(download.size_bytes)
    return StreamingResponse(download.chunks, media_type=media_type, headers=headers)


async def _handle_clear_cache(operations: FileOperations) -> JSONResponse:
    try:
        result = await operations.clear_cache()
    except ListError as e:
        logger.error(f"Error clearing cache: {e}")
        return _error(500, f"Failed to clear cache: {e}")

    if result.outcome is ClearCacheOutcome.NOTHING_TO_CLEAR:
        return JSONResponse({"message": result.message})

    if result.outcome is ClearCacheOutcome.PARTIAL:
        return JSONResponse(
            {
                "message": result.message,
                "deletedCount": result.deleted_count,
                "errors": [str(err) for err in result.errors],
            },
            status_code=HTTP_MULTI_STATUS,
        )

    return JSONResponse(
        {"message": result.message, "deletedCount": result.deleted_count}
    )


def register_file_routes(
    app: FastAPI, operations: FileOperations, status: InitializationStatus
):
    @app.get("/api/files/list")
    async def list_files() -> JSONResponse:
        return await _handle_list_files(operations)

    @app.get("/api/files/download/{filename}")
    async def download_file(filename: str):
        return await _handle_download_file(operations, filename)

    @app.post("/api/files/clear-cache")
    async def clear_cache() -> JSONResponse:
        return await _handle_clear_cache(operations)

    @app.get("/api/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "blobStorage": status.blob_storage})
