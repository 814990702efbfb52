"""
Shared fixtures: MBTiles archives written to a temporary storage directory.
"""

import gzip
import sqlite3
from pathlib import Path
from typing import Callable, Dict, Generator, Optional, Tuple
from unittest.mock import Mock, patch

import pytest

from lt.storage.catalog import ArchiveCatalog

# (zoom_level, tile_column, tile_row) in TMS order, as stored
TileKey = Tuple[int, int, int]

VECTOR_PAYLOAD = b"\x1a\x0cvector-layer"
RASTER_PAYLOAD = b"\x89PNG\r\n\x1a\nraster-bytes"


def write_mbtiles(
    path: Path,
    fmt: Optional[str],
    tiles: Optional[Dict[TileKey, bytes]] = None,
    with_tiles_table: bool = True,
) -> Path:
    """Write a minimal MBTiles file. fmt=None leaves the `format` row out."""
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE metadata (name TEXT, value TEXT)")
        if fmt is not None:
            conn.execute("INSERT INTO metadata (name, value) VALUES ('format', ?)", (fmt,))
        conn.execute("INSERT INTO metadata (name, value) VALUES ('name', ?)", (path.stem,))
        if with_tiles_table:
            conn.execute(
                "CREATE TABLE tiles (zoom_level INTEGER, tile_column INTEGER, tile_row INTEGER, tile_data BLOB)"
            )
            for (z, x, row), data in (tiles or {}).items():
                conn.execute("INSERT INTO tiles VALUES (?, ?, ?, ?)", (z, x, row, sqlite3.Binary(data)))
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    d = tmp_path / "files"
    d.mkdir()
    return d


@pytest.fixture
def mbtiles(storage_dir: Path) -> Callable[..., Path]:
    """Factory writing <storage_dir>/<name>.mbtiles."""
    def _make(name: str, fmt: Optional[str], tiles: Optional[Dict[TileKey, bytes]] = None, **kwargs) -> Path:
        return write_mbtiles(storage_dir / f"{name}.mbtiles", fmt, tiles, **kwargs)
    return _make


@pytest.fixture
def world_dir(storage_dir: Path, mbtiles: Callable[..., Path]) -> Path:
    """
    Storage directory with:
      world.mbtiles   pbf, tile z=3 x=2 y=1 (TMS row 6) gzip-compressed
      satellite.mbtiles  png, tile z=3 x=2 y=1 raw
      style.json
    """
    mbtiles("world", "pbf", {(3, 2, 6): gzip.compress(VECTOR_PAYLOAD)})
    mbtiles("satellite", "png", {(3, 2, 6): RASTER_PAYLOAD})
    (storage_dir / "style.json").write_bytes(b'{"version": 8}')
    return storage_dir


@pytest.fixture
def world_catalog(world_dir: Path) -> Generator[ArchiveCatalog, None, None]:
    catalog = ArchiveCatalog.build(world_dir)
    yield catalog
    catalog.close()


@pytest.fixture
def fake_config() -> Generator[Dict[str, object], None, None]:
    """Replace iConfig with a dict; keys set in the returned dict are visible to the code under test."""
    values: Dict[str, object] = {}
    config = Mock(side_effect=lambda key, default=None: values.get(key, default))
    with patch("lt.interceptor.interceptor.iConfig", return_value=config):
        yield values
