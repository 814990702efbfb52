import gzip
import os
from pathlib import Path

GZIP_MAGIC = b"\x1f\x8b"


def to_tms_row(z: int, y: int) -> int:
    """
    Flips a tile row between XYZ (top-left origin) and TMS (bottom-left origin).

    The conversion is its own inverse for a fixed zoom level, so the same function
    converts in both directions.

    Args:
        z (int): Zoom level.
        y (int): Row in the source convention.
    Returns:
        int: Row in the other convention.

    Example:
        to_tms_row(3, 1)   # 6
        to_tms_row(3, 6)   # 1
    """
    return (1 << z) - 1 - y


def gunzip_tile(data: bytes) -> bytes:
    """
    Decompresses a gzip-framed vector tile.

    Payloads without the gzip magic number are returned unchanged; some tile
    generators store uncompressed protobuf. A payload that carries the magic
    number but is corrupt raises (OSError / EOFError from the gzip module).
    """
    if not data.startswith(GZIP_MAGIC):
        return data
    return gzip.decompress(data)


def resolve_storage_directory(app_id: str) -> Path:
    """
    Translates an application identifier into its private storage directory.

    Uses $XDG_DATA_HOME when set, ~/.local/share otherwise:
        <data home>/<app_id>/files

    Args:
        app_id (str): Application identifier, e.g. "com.example.maps".
    Returns:
        Path: The storage directory.
    Raises:
        ValueError: If app_id is empty.
        FileNotFoundError: If the directory does not exist.
    """
    if not app_id:
        raise ValueError("An application id is required to locate the storage directory.")

    data_home = Path(os.getenv("XDG_DATA_HOME") or Path.home() / ".local" / "share")
    storage_dir = data_home / app_id / "files"
    if not storage_dir.is_dir():
        raise FileNotFoundError(f"Storage directory for '{app_id}' does not exist: {storage_dir}")
    return storage_dir
