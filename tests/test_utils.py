"""
Tests for lt.utils.utils module.
"""

import gzip
from pathlib import Path

import pytest

from lt.utils.utils import gunzip_tile, resolve_storage_directory, to_tms_row


class TestToTmsRow:
    """Test the XYZ <-> TMS row flip."""

    def test_known_values(self) -> None:
        assert to_tms_row(0, 0) == 0
        assert to_tms_row(1, 0) == 1
        assert to_tms_row(3, 1) == 6
        assert to_tms_row(3, 7) == 0

    @pytest.mark.parametrize("z", [0, 1, 4, 10, 20])
    def test_round_trip_at_same_zoom(self, z: int) -> None:
        n = 1 << z
        for y in {y for y in (0, 1, n // 2, n - 1) if y < n}:
            tms = to_tms_row(z, y)
            assert tms == (2 ** z - 1) - y
            assert 0 <= tms < n
            assert to_tms_row(z, tms) == y

    def test_out_of_range_row_goes_negative(self) -> None:
        assert to_tms_row(2, 5) == -2


class TestGunzipTile:
    """Test gunzip_tile()."""

    def test_decompresses_gzip(self) -> None:
        assert gunzip_tile(gzip.compress(b"payload")) == b"payload"

    def test_passes_through_raw_bytes(self) -> None:
        assert gunzip_tile(b"\x1a\x02ab") == b"\x1a\x02ab"

    def test_empty(self) -> None:
        assert gunzip_tile(b"") == b""

    def test_corrupt_gzip_raises(self) -> None:
        with pytest.raises((OSError, EOFError)):
            gunzip_tile(b"\x1f\x8b" + b"\x00" * 8)


class TestResolveStorageDirectory:
    """Test the app id -> storage directory lookup."""

    def test_uses_xdg_data_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        expected = tmp_path / "com.example.maps" / "files"
        expected.mkdir(parents=True)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

        assert resolve_storage_directory("com.example.maps") == expected

    def test_falls_back_to_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        expected = tmp_path / ".local" / "share" / "app" / "files"
        expected.mkdir(parents=True)

        assert resolve_storage_directory("app") == expected

    def test_missing_directory_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        with pytest.raises(FileNotFoundError):
            resolve_storage_directory("not.installed")

    def test_empty_app_id_raises(self) -> None:
        with pytest.raises(ValueError):
            resolve_storage_directory("")
