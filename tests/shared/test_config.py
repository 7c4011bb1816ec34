"""Tests for shared config file discovery and section loading."""

import os
import tempfile
from pathlib import Path

from shared.config import CONFIG_FILENAME, find_config_file, load_section


def _write(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


class TestFindConfigFile:
    def test_found_in_parent_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            config = _write(root / CONFIG_FILENAME, "api: {}\n")
            nested = root / "scrapers" / "amazon"
            nested.mkdir(parents=True)

            assert find_config_file(nested) == config

    def test_missing_returns_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            assert find_config_file(Path(tmpdir)) is None


class TestLoadSection:
    def test_returns_named_section(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(
                Path(tmpdir) / "config.yaml",
                "api:\n  debug: true\nsdk:\n  batch_size: 50\n",
            )
            assert load_section(path, "sdk") == {"batch_size": 50}
            assert load_section(path, "api") == {"debug": True}

    def test_flat_file_returned_whole(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = _write(Path(tmpdir) / "config.yaml", "batch_size: 50\n")
            assert load_section(path, "sdk") == {"batch_size": 50}

    def test_missing_file_is_empty(self) -> None:
        missing = os.path.join(tempfile.gettempdir(), "no-such-shopcompare.yaml")
        assert load_section(missing, "api") == {}
