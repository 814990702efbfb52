from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import unquote_plus

from loguru import logger

from lt.model.models import (
    HttpResponse,
    LocalFilePath,
    LocalPath,
    RasterTilePath,
    TileCoordinate,
    TileKind,
    TilePath,
    UnmatchedPath,
    VectorTilePath,
)
from lt.resolver.resolver import TileResolver

LOCAL_AUTHORITY = "https://local"
TILES_PREFIX = "/tiles"

_TILE_PATHS = {TileKind.VECTOR: VectorTilePath, TileKind.RASTER: RasterTilePath}


def _is_decimal(s: str) -> bool:
    return s.isascii() and s.isdigit()


def parse_tile_path(path: str) -> Optional[TilePath]:
    """
    Parse /tiles/{name}/{z}/{x}/{y}.pbf or /tiles/{name}/{z}/{x}/{y}.png.

    {name} may itself contain slashes; the last three segments are the
    coordinate. Returns None when the path has any other shape.
    """
    if not path.startswith(TILES_PREFIX + "/"):
        return None
    parts = path[len(TILES_PREFIX) + 1:].rsplit("/", 3)
    if len(parts) != 4:
        return None
    name, z, x, last = parts
    y, _, suffix = last.rpartition(".")
    kind = TileKind.from_suffix(suffix)
    if not name or kind is None or not all(_is_decimal(v) for v in (z, x, y)):
        return None
    try:
        coord = TileCoordinate(z=int(z), x=int(x), y=int(y))
    except ValueError:
        # more digits than int() accepts
        return None
    return _TILE_PATHS[kind](name=name, coord=coord)


def parse_path(path: str) -> LocalPath:
    """
    Classify a decoded local path.

    Paths under /tiles are tile requests or unmatched; anything else names a
    file relative to the storage directory.
    """
    if not path.startswith(TILES_PREFIX):
        return LocalFilePath(path=path)
    tile = parse_tile_path(path)
    return tile if tile is not None else UnmatchedPath(path=path)


class RequestRouter:
    """
    Substitutes responses for requests addressed to the local authority.

    Tile paths are answered from the MBTiles archives (200, possibly with an
    empty body), other paths from files in the storage directory. Everything
    else returns the response it was given, unchanged.
    """

    def __init__(self, resolver: TileResolver, storage_dir: Path, authority: str = LOCAL_AUTHORITY):
        self.resolver = resolver
        self.storage_dir = Path(storage_dir)
        self.authority = authority

    def local_path(self, url: str) -> Optional[str]:
        """Decoded path after the authority prefix, or None for network URLs.

        A plain string prefix test: with the default authority,
        https://localhost.example.com/a.json is local too, with path
        "host.example.com/a.json".
        """
        if not url.startswith(self.authority):
            return None
        return unquote_plus(url)[len(self.authority):]

    def route(self, response: HttpResponse) -> HttpResponse:
        url = response.request.url
        if (path := self.local_path(url)) is None:
            logger.debug(f"Network response: {url}")
            return response

        target = parse_path(path)
        if isinstance(target, TilePath):
            return self._tile_response(response, target)
        if isinstance(target, LocalFilePath):
            return self._file_response(response, target)
        logger.debug(f"No tile pattern matches {path}")
        return response

    def _tile_response(self, response: HttpResponse, tile: TilePath) -> HttpResponse:
        c = tile.coord
        logger.debug(f"Tile request {tile.kind.value} {tile.name}/{c}")
        data = self.resolver.fetch(tile.kind, tile.name, c.z, c.x, c.y)
        logger.debug(f"Got {tile.kind.value} tile of length {len(data)}")
        return HttpResponse.substitute(response.request, data)

    def _resolve_file(self, local: LocalFilePath) -> Optional[Path]:
        root = self.storage_dir.resolve()
        try:
            candidate = (root / local.path.lstrip("/")).resolve()
        except ValueError as e:
            logger.warning(f"Local path {local.path!r} is not a valid file path: {e}")
            return None
        if not candidate.is_relative_to(root):
            logger.warning(f"Local path {local.path} escapes the storage directory")
            return None
        return candidate if candidate.is_file() else None

    def _file_response(self, response: HttpResponse, local: LocalFilePath) -> HttpResponse:
        if (file := self._resolve_file(local)) is None:
            logger.debug(f"File not found: {self.storage_dir}{local.path}")
            return response
        try:
            data = file.read_bytes()
        except OSError as e:
            logger.warning(f"Cannot read local file {file}: {e}")
            return response
        logger.debug(f"Serving local file {file} ({len(data)} bytes)")
        return HttpResponse.substitute(response.request, data)
