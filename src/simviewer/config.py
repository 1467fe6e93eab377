"""Viewer configuration, read once from the environment."""

import os

from pydantic import BaseModel


class GirderConfig(BaseModel):
    api_root: str = "https://data.kitware.com/api/v1"
    api_key: str = ""  # exchanged for a Girder-Token on first request
    timeout: float = 30.0
    requests_per_second: float = 10.0  # listing queries; 0 disables throttling
    downloads_per_second: float = 4.0  # file bodies, spaced separately from queries
    page_size: int = 0  # 0 = one request with limit=0 (server returns everything)


class CacheConfig(BaseModel):
    dir: str = ""  # empty disables the download cache


class ViewerConfig(BaseModel):
    pick_scale: float = 10.0


class AppConfig(BaseModel):
    girder: GirderConfig = GirderConfig()
    cache: CacheConfig = CacheConfig()
    viewer: ViewerConfig = ViewerConfig()
    debug: bool = False
    log_level: str = "INFO"


def _build_config() -> AppConfig:
    """Build config from environment variables."""
    debug = os.environ.get("DEBUG", "").lower() in ("1", "true", "yes")
    return AppConfig(
        girder=GirderConfig(
            api_root=os.environ.get("GIRDER_API_ROOT", "https://data.kitware.com/api/v1"),
            api_key=os.environ.get("GIRDER_API_KEY", ""),
            timeout=float(os.environ.get("GIRDER_TIMEOUT", "30")),
            requests_per_second=float(os.environ.get("GIRDER_RATE", "10")),
            downloads_per_second=float(os.environ.get("GIRDER_DOWNLOAD_RATE", "4")),
            page_size=int(os.environ.get("GIRDER_PAGE_SIZE", "0")),
        ),
        cache=CacheConfig(
            dir=os.environ.get("SIMVIEWER_CACHE_DIR", ""),
        ),
        viewer=ViewerConfig(
            pick_scale=float(os.environ.get("SIMVIEWER_PICK_SCALE", "10")),
        ),
        debug=debug,
        log_level="DEBUG" if debug else os.environ.get("SIMVIEWER_LOG_LEVEL", "INFO").upper(),
    )


config = _build_config()
