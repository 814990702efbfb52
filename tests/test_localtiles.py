"""
Tests for the localtiles command-line entry point.
"""

from pathlib import Path
from typing import Dict

import orjson
import pytest

from conftest import VECTOR_PAYLOAD
from lt.localtiles import get_args, main


class TestGetArgs:
    def test_positional_dir(self) -> None:
        args = get_args(["/data/files", "--list"])
        assert args.storage_dir == "/data/files"
        assert args.list

    def test_option_wins_over_positional(self) -> None:
        args = get_args(["/a", "-d", "/b", "-u", "https://local/style.json"])
        assert args.storage_dir == "/b"

    def test_requires_an_action(self) -> None:
        with pytest.raises(SystemExit):
            get_args(["/data/files"])

    def test_rejects_unknown_strategy(self) -> None:
        with pytest.raises(SystemExit):
            get_args(["-l", "-s", "nearest"])


class TestMain:
    def test_list(self, fake_config: Dict[str, object], world_dir: Path, capsys: pytest.CaptureFixture) -> None:
        assert main([str(world_dir), "--list"]) == 0

        out = capsys.readouterr().out
        assert orjson.loads(out) == {"vector": ["world"], "raster": ["satellite"]}

    def test_resolve_tile_to_file(self, fake_config: Dict[str, object], world_dir: Path, tmp_path: Path) -> None:
        out = tmp_path / "tile.pbf"
        assert main([str(world_dir), "-u", "https://local/tiles/world/3/2/1.pbf", "-o", str(out)]) == 0
        assert out.read_bytes() == VECTOR_PAYLOAD

    def test_passthrough_fails(self, fake_config: Dict[str, object], world_dir: Path) -> None:
        assert main([str(world_dir), "-u", "https://local/missing.json"]) == 1

    def test_missing_directory_fails(self, fake_config: Dict[str, object], tmp_path: Path) -> None:
        assert main([str(tmp_path / "nope"), "--list"]) == 1
