from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from iconfig.iconfig import iConfig
from loguru import logger
from pydantic import BaseModel, Field, model_validator

from lt.model.models import DownloadOptions, HttpRequest, HttpResponse, ResolutionStrategy
from lt.resolver.resolver import TileResolver
from lt.router.router import LOCAL_AUTHORITY, RequestRouter
from lt.storage.catalog import ArchiveCatalog
from lt.utils.utils import resolve_storage_directory

DEFAULT_USER_AGENT_MARKER = "LocalTiles"


class InterceptorConfig(BaseModel):
    """
    Configuration used by create_interceptor().
    """
    # One of:
    storage_dir: Optional[Path] = None  # used as-is
    app_id: Optional[str] = None        # looked up via the directory collaborator

    authority: str = Field(default=LOCAL_AUTHORITY, min_length=1)
    user_agent_marker: str = Field(default=DEFAULT_USER_AGENT_MARKER)
    resolution: ResolutionStrategy = Field(default=ResolutionStrategy.SCAN_ALL)

    @model_validator(mode="after")
    def _check_location(self):
        if self.storage_dir is None and not self.app_id:
            raise ValueError("InterceptorConfig must include either storage_dir or app_id.")
        return self


class LocalTileInterceptor:
    """
    Transport interceptor serving `https://local` URLs from MBTiles archives and
    local files.

    Hooks:
      - on_request(...)   tags the user agent
      - on_download(...)  passthrough
      - on_response(...)  substitutes local content, never raises

    The archive catalog is built on first use. Concurrent first calls share one
    build; if the storage directory cannot be found or scanned the interceptor
    stays a passthrough.
    """

    def __init__(
        self,
        cfg: InterceptorConfig,
        directory_lookup: Callable[[str], Path] = resolve_storage_directory,
    ):
        self._cfg = cfg
        self._directory_lookup = directory_lookup
        self._lock = threading.Lock()
        self._initialized = False
        self._catalog: Optional[ArchiveCatalog] = None
        self._router: Optional[RequestRouter] = None

    @property
    def config(self) -> InterceptorConfig:
        return self._cfg

####################################################################################################################
#   Lifetime
####################################################################################################################

    def _storage_dir(self) -> Path:
        if self._cfg.storage_dir is not None:
            return self._cfg.storage_dir
        return Path(self._directory_lookup(self._cfg.app_id))

    def _initialize(self) -> None:
        try:
            storage_dir = self._storage_dir()
            catalog = ArchiveCatalog.build(storage_dir)
        except Exception as e:
            logger.error(f"Local tiles disabled, storage directory unavailable: {type(e).__name__}: {e}")
            return

        self._catalog = catalog
        self._router = RequestRouter(
            resolver=TileResolver(catalog, strategy=self._cfg.resolution),
            storage_dir=catalog.storage_dir,
            authority=self._cfg.authority,
        )

    def _ensure_initialized(self) -> Optional[RequestRouter]:
        if not self._initialized:
            with self._lock:
                if not self._initialized:
                    self._initialize()
                    self._initialized = True
        return self._router

    @property
    def catalog(self) -> Optional[ArchiveCatalog]:
        self._ensure_initialized()
        return self._catalog

    def close(self) -> None:
        with self._lock:
            if self._catalog is not None:
                self._catalog.close()
            self._catalog = None
            self._router = None

####################################################################################################################
#   Hooks
####################################################################################################################

    def on_request(self, request: HttpRequest) -> HttpRequest:
        key = next((k for k in request.headers if k.lower() == HttpRequest.USER_AGENT), HttpRequest.USER_AGENT)
        current = request.headers.get(key)
        marker = self._cfg.user_agent_marker
        user_agent = f"{current} {marker}" if current else marker
        return request.model_copy(update={"headers": {**request.headers, key: user_agent}})

    def on_download(self, download: DownloadOptions) -> DownloadOptions:
        return download

    def on_response(self, response: HttpResponse) -> HttpResponse:
        try:
            router = self._ensure_initialized()
            if router is None:
                return response
            return router.route(response)
        except Exception:
            logger.exception(f"Local substitution failed for {response.request.url}")
            return response

####################################################################################################################
# Factory
####################################################################################################################

def create_interceptor(
    *,
    storage_dir: Optional[Union[str, Path]] = None,
    app_id: Optional[str] = None,
    authority: Optional[str] = None,
    user_agent_marker: Optional[str] = None,
    resolution: Optional[Union[str, ResolutionStrategy]] = None,
    directory_lookup: Callable[[str], Path] = resolve_storage_directory,
) -> LocalTileInterceptor:
    """
    Create a LocalTileInterceptor.

    Priority: explicit args > env vars (LOCALTILES_STORAGE_DIR, LOCALTILES_APP_ID)
    > iconfig keys (localtiles.*) > defaults.
    """
    config = iConfig()

    if storage_dir is None and app_id is None:
        storage_dir = os.getenv("LOCALTILES_STORAGE_DIR") or config("localtiles.storage_dir", default=None)
        app_id = os.getenv("LOCALTILES_APP_ID") or config("localtiles.app_id", default=None)

    cfg = InterceptorConfig(
        storage_dir=storage_dir,
        app_id=app_id,
        authority=authority or config("localtiles.authority", default=LOCAL_AUTHORITY),
        user_agent_marker=user_agent_marker or config("localtiles.user_agent_marker", default=DEFAULT_USER_AGENT_MARKER),
        resolution=resolution or config("localtiles.resolution", default=ResolutionStrategy.SCAN_ALL.value),
    )
    return LocalTileInterceptor(cfg, directory_lookup=directory_lookup)
