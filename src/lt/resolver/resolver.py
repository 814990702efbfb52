from __future__ import annotations

from typing import Iterable, List

from loguru import logger
from pydantic import BaseModel, Field

from lt.model.models import ResolutionStrategy, TileCoordinate, TileHit, TileKind, TileQueryResult
from lt.storage.archive import MBTilesArchive
from lt.storage.catalog import ArchiveCatalog


class Resolution(BaseModel):
    """Outcome of a tile lookup: the per-archive attempts, in the order they were made."""
    kind: TileKind
    name_hint: str
    coord: TileCoordinate
    attempts: List[TileQueryResult] = Field(default_factory=list)

    @property
    def hit(self) -> TileHit | None:
        hits = [attempt for attempt in self.attempts if isinstance(attempt, TileHit)]
        return next((h for h in hits if h.data), hits[0] if hits else None)

    @property
    def data(self) -> bytes:
        """Tile payload, or empty bytes on a miss."""
        hit = self.hit
        return hit.data if hit is not None else b""


class TileResolver:
    """
    Looks tiles up in the catalog's archives.

    With ResolutionStrategy.SCAN_ALL (the default) the archive name from the
    request is only a hint: every archive of the requested kind is tried in
    index order and the first non-empty tile wins. ResolutionStrategy.BY_NAME
    restricts the lookup to the named archive.
    """

    def __init__(self, catalog: ArchiveCatalog, strategy: ResolutionStrategy = ResolutionStrategy.SCAN_ALL):
        self.catalog = catalog
        self.strategy = strategy

    def _candidates(self, kind: TileKind, name_hint: str) -> Iterable[MBTilesArchive]:
        if self.strategy is ResolutionStrategy.BY_NAME:
            archive = self.catalog.get(kind, name_hint)
            return [archive] if archive is not None else []
        return self.catalog.archives(kind).values()

    def resolve(self, kind: TileKind, name_hint: str, coord: TileCoordinate) -> Resolution:
        resolution = Resolution(kind=kind, name_hint=name_hint, coord=coord)
        for archive in self._candidates(kind, name_hint):
            result = archive.query_tile(coord)
            resolution.attempts.append(result)
            if isinstance(result, TileHit) and result.data:
                logger.debug(f"Tile {coord} ({kind.value}, hint {name_hint}) found in {archive.name}")
                break
        else:
            logger.debug(f"Tile {coord} ({kind.value}, hint {name_hint}) not found in {len(resolution.attempts)} archive(s)")
        return resolution

    def fetch(self, kind: TileKind, name_hint: str, zoom: int, col: int, row: int) -> bytes:
        """
        Fetch one tile as bytes.

        Args:
            kind: Vector or raster
            name_hint: Archive name taken from the request path
            zoom: Zoom level
            col: Tile column
            row: Tile row, XYZ convention

        Returns:
            The tile payload (decompressed for vector tiles), or b"" when no
            archive has it
        """
        return self.resolve(kind, name_hint, TileCoordinate(z=zoom, x=col, y=row)).data
