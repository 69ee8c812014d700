from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from fileshelf.config import Settings
from fileshelf.file_operations import FileOperations
from fileshelf.routes import register_file_routes
from fileshelf.selector import BackendSelection


def _resolve_frontend_file(frontend_dir: Path, full_path: str) -> Optional[Path]:
    candidate = (frontend_dir / full_path).resolve()
    try:
        candidate.relative_to(frontend_dir)
    except ValueError:
        return None
    return candidate if candidate.is_file() else None


def register_frontend_routes(app: FastAPI, frontend_dir: Path):
    frontend_dir = frontend_dir.resolve()
    index_file = frontend_dir / "index.html"

    @app.get("/{full_path:path}", include_in_schema=False)
    async def frontend(full_path: str):
        static_file = _resolve_frontend_file(frontend_dir, full_path)
        if static_file is not None:
            return FileResponse(str(static_file))

        # API, upload and asset requests never fall through to the client router
        if full_path.startswith(("api", "uploads")) or "." in full_path:
            return PlainTextResponse("Not found", status_code=404)

        return FileResponse(str(index_file))


def create_app(selection: BackendSelection, settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        settings = Settings()

    app = FastAPI(title="fileshelf")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    operations = FileOperations(selection)
    register_file_routes(app, operations, selection.status)

    app.mount(
        "/uploads",
        StaticFiles(directory=str(settings.uploads_dir), check_dir=False),
        name="uploads",
    )

    if settings.is_production:
        if settings.frontend_dir.is_dir():
            logger.info(f"Serving frontend static files from: {settings.frontend_dir}")
            register_frontend_routes(app, settings.frontend_dir)
        else:
            logger.warning("Frontend build directory not found. API-only mode active.")

    return app
