import asyncio
import signal
from typing import Optional

import uvicorn
from loguru import logger

from fileshelf.app import create_app
from fileshelf.config import Settings
from fileshelf.selector import BackendSelection, resolve_backend
from fileshelf.storage.backend import FileStore
from fileshelf.storage.local import LocalStorage
from fileshelf.storage.s3 import S3Storage


def build_remote_store(settings: Settings) -> Optional[FileStore]:
    if not settings.remote_configured:
        return None
    return S3Storage(
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        prefix=settings.s3_prefix,
        endpoint_url=settings.s3_endpoint,
    )


class FileShelfServer:
    """Resolves the storage backend once, then serves HTTP until shutdown."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.selection: Optional[BackendSelection] = None
        self.http_server = None

    async def resolve(self) -> BackendSelection:
        if self.selection is None:
            local = LocalStorage(self.settings.uploads_dir)
            remote = build_remote_store(self.settings)
            self.selection = await resolve_backend(local, remote)
        return self.selection

    async def start(self):
        logger.info("Starting server initialization...")
        selection = await self.resolve()
        app = create_app(selection, self.settings)

        config = uvicorn.Config(
            app,
            host=self.settings.host,
            port=self.settings.port,
            log_level="info",
            access_log=True,
        )
        self.http_server = uvicorn.Server(config)

        logger.info(f"Server running on port {self.settings.port}")
        logger.info(f"Storage backend: {selection.backend.value}")
        await self.http_server.serve()

    async def stop(self):
        if self.http_server:
            logger.info("Stopping HTTP server...")
            self.http_server.should_exit = True
            await asyncio.sleep(0.1)


async def run_server_async(settings: Settings):
    server = FileShelfServer(settings)
    loop = asyncio.get_running_loop()

    def handle_shutdown(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        asyncio.create_task(server.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_shutdown(s))

    await server.start()


def run_server(settings: Settings):
    asyncio.run(run_server_async(settings))
