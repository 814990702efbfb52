from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Union

from loguru import logger

from lt.model.models import TileKind
from lt.storage.archive import MBTILES_EXTENSION, MBTilesArchive, open_archive


class ArchiveCatalog:
    """
    Index of the MBTiles archives found in a storage directory, split by kind.

    Built once and read-only afterwards: an archive name appears in at most one
    of the two indexes, and archives whose format could not be determined appear
    in neither.
    """

    def __init__(self, storage_dir: Path, vector: Dict[str, MBTilesArchive], raster: Dict[str, MBTilesArchive]):
        self.storage_dir = storage_dir
        self._indexes: Dict[TileKind, Mapping[str, MBTilesArchive]] = {
            TileKind.VECTOR: MappingProxyType(dict(vector)),
            TileKind.RASTER: MappingProxyType(dict(raster)),
        }

    @classmethod
    def build(cls, storage_dir: Union[str, Path]) -> ArchiveCatalog:
        """
        Scan `storage_dir` for .mbtiles files and open each of them.

        Files are visited in name order. An archive that cannot be opened or
        classified is logged and skipped; it never aborts the scan.

        Raises:
            FileNotFoundError: storage_dir does not exist
            NotADirectoryError: storage_dir is not a directory
        """
        root = Path(storage_dir)
        if not root.exists():
            raise FileNotFoundError(f"Storage directory does not exist: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Storage path is not a directory: {root}")

        entries = sorted(root.iterdir(), key=lambda p: p.name)
        logger.debug(f"Storage directory {root}: {[p.name for p in entries]}")

        indexes: Dict[TileKind, Dict[str, MBTilesArchive]] = {TileKind.VECTOR: {}, TileKind.RASTER: {}}
        for path in entries:
            if not path.name.endswith(MBTILES_EXTENSION) or not path.is_file():
                continue
            if (archive := open_archive(path)) is not None:
                indexes[archive.kind][archive.name] = archive

        catalog = cls(root, vector=indexes[TileKind.VECTOR], raster=indexes[TileKind.RASTER])
        logger.info(f"Archive catalog for {root}: {catalog.summary()}")
        return catalog

    def archives(self, kind: TileKind) -> Mapping[str, MBTilesArchive]:
        return self._indexes[kind]

    @property
    def vector(self) -> Mapping[str, MBTilesArchive]:
        return self._indexes[TileKind.VECTOR]

    @property
    def raster(self) -> Mapping[str, MBTilesArchive]:
        return self._indexes[TileKind.RASTER]

    def get(self, kind: TileKind, name: str) -> MBTilesArchive | None:
        return self._indexes[kind].get(name)

    def summary(self) -> Dict[str, List[str]]:
        return {kind.value: list(index) for kind, index in self._indexes.items()}

    def __len__(self) -> int:
        return sum(len(index) for index in self._indexes.values())

    def close(self) -> None:
        """Close every archive. The catalog must not be used afterwards."""
        for index in self._indexes.values():
            for archive in index.values():
                archive.close()
