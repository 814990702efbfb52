"""MBTiles archive: a read-only SQLite store with `metadata` and `tiles` tables."""

from __future__ import annotations

import sqlite3
import zlib
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from lt.model.models import TileCoordinate, TileHit, TileKind, TileMiss, TileQueryError, TileQueryResult
from lt.utils.utils import gunzip_tile

MBTILES_EXTENSION = ".mbtiles"

# Largest zoom whose TMS rows fit a signed 64-bit SQLite INTEGER
MAX_ZOOM = 63

FORMAT_QUERY = "SELECT value FROM metadata WHERE name = 'format'"
TILE_QUERY = "SELECT tile_data FROM tiles WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?"


class ArchiveFormatError(Exception):
    """The archive opened but its `format` metadata could not be determined."""


class MBTilesArchive:
    """
    One MBTiles file held open for the lifetime of the catalog.

    The connection is opened read-only and shared between threads; it is only
    ever used for SELECT statements.
    """

    def __init__(self, name: str, path: Path, kind: TileKind, conn: sqlite3.Connection):
        self.name = name
        self.path = path
        self.kind = kind
        self._conn = conn

    def __repr__(self) -> str:
        return f"MBTilesArchive(name={self.name!r}, kind={self.kind.value}, path={str(self.path)!r})"

    @staticmethod
    def name_for(path: Union[str, Path]) -> str:
        """Archive name: the file name with the .mbtiles extension stripped."""
        return Path(path).name[: -len(MBTILES_EXTENSION)]

    @classmethod
    def open(cls, path: Union[str, Path]) -> MBTilesArchive:
        """
        Open an archive and classify it from its `format` metadata.

        Args:
            path: Path to the .mbtiles file

        Returns:
            The opened archive

        Raises:
            sqlite3.Error: The file cannot be opened or is not an SQLite database
            ArchiveFormatError: The metadata has no `format` row
        """
        path = Path(path).resolve()
        logger.debug(f"Opening archive {path} ...")
        conn = sqlite3.connect(f"{path.as_uri()}?mode=ro", uri=True, check_same_thread=False)
        try:
            fmt = cls._read_format(conn)
        except Exception:
            conn.close()
            raise
        return cls(name=cls.name_for(path), path=path, kind=TileKind.from_format(fmt), conn=conn)

    @staticmethod
    def _read_format(conn: sqlite3.Connection) -> str:
        row = conn.execute(FORMAT_QUERY).fetchone()
        if row is None or row[0] is None:
            raise ArchiveFormatError("metadata has no 'format' entry")
        fmt = row[0]
        return fmt.decode("utf-8", errors="replace") if isinstance(fmt, bytes) else str(fmt)

    def query_tile(self, coord: TileCoordinate) -> TileQueryResult:
        """
        Look up one tile by its XYZ coordinate.

        The row is flipped to TMS before querying. Vector payloads are gunzipped,
        raster payloads are returned as stored. Storage failures are reported as
        TileQueryError rather than raised. Zoom levels whose rows do not fit a
        SQLite INTEGER cannot be stored, so they are a miss without querying.
        """
        if coord.z > MAX_ZOOM:
            return TileMiss(archive=self.name)

        tms_row = coord.tms_row()
        try:
            row = self._conn.execute(TILE_QUERY, (coord.z, coord.x, tms_row)).fetchone()
        except (sqlite3.Error, OverflowError) as e:
            logger.warning(f"Tile query {coord} failed on {self.name}: {e}")
            return TileQueryError(archive=self.name, error=f"{type(e).__name__}: {e}")

        if row is None or row[0] is None:
            return TileMiss(archive=self.name)

        data = bytes(row[0])
        if self.kind is TileKind.VECTOR:
            try:
                data = gunzip_tile(data)
            except (OSError, EOFError, zlib.error) as e:
                logger.warning(f"Tile {coord} in {self.name} is not valid gzip: {e}")
                return TileQueryError(archive=self.name, error=f"{type(e).__name__}: {e}")
        return TileHit(archive=self.name, data=data)

    def close(self) -> None:
        self._conn.close()


def open_archive(path: Union[str, Path]) -> Optional[MBTilesArchive]:
    """Open an archive, logging and returning None when it cannot be used."""
    try:
        archive = MBTilesArchive.open(path)
    except (sqlite3.Error, ArchiveFormatError) as e:
        logger.warning(f"Skipping archive {path}: {type(e).__name__}: {e}")
        return None
    logger.info(f"Opened {archive.kind.value} archive {archive.name} at {archive.path}")
    return archive
