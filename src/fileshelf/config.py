import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

HTTP_PORT = 8001
DEFAULT_HOST = "0.0.0.0"
DEFAULT_UPLOADS_DIR = Path("uploads")
DEFAULT_FRONTEND_DIR = Path("..") / "frontend" / "build"
DEFAULT_S3_REGION = "us-east-1"
DEFAULT_S3_PREFIX = "uploads"


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = HTTP_PORT
    uploads_dir: Path = DEFAULT_UPLOADS_DIR
    s3_bucket: Optional[str] = None
    s3_region: str = DEFAULT_S3_REGION
    s3_prefix: str = DEFAULT_S3_PREFIX
    s3_endpoint: Optional[str] = None
    environment: str = "development"
    frontend_dir: Path = DEFAULT_FRONTEND_DIR

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def remote_configured(self) -> bool:
        return bool(self.s3_bucket)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "Settings":
        env = os.environ if environ is None else environ
        port = env.get("FILESHELF_PORT") or env.get("PORT") or HTTP_PORT
        return cls(
            host=env.get("FILESHELF_HOST", DEFAULT_HOST),
            port=int(port),
            uploads_dir=Path(env.get("FILESHELF_UPLOADS_DIR", DEFAULT_UPLOADS_DIR))
            .expanduser()
            .resolve(),
            s3_bucket=env.get("FILESHELF_S3_BUCKET") or None,
            s3_region=env.get("FILESHELF_S3_REGION", DEFAULT_S3_REGION),
            s3_prefix=env.get("FILESHELF_S3_PREFIX", DEFAULT_S3_PREFIX),
            s3_endpoint=env.get("FILESHELF_S3_ENDPOINT") or None,
            environment=env.get("FILESHELF_ENV", "development"),
            frontend_dir=Path(env.get("FILESHELF_FRONTEND_DIR", DEFAULT_FRONTEND_DIR))
            .expanduser()
            .resolve(),
        )
