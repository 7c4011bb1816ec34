"""Tests for feed SDK configuration."""

import os
import tempfile
from unittest import mock

from sdk.config import FeedConfig, load_config


def _write_yaml(content: str) -> str:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(content)
        return f.name


class TestFeedConfig:
    """Tests for FeedConfig dataclass."""

    def test_default_values(self) -> None:
        """Config has expected default values."""
        config = FeedConfig()
        assert config.base_url is None
        assert config.api_key is None
        assert config.buffer_size == 1000
        assert config.flush_interval == 5.0
        assert config.batch_size == 100
        assert config.http_timeout == 30.0


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults_with_no_args(self) -> None:
        """Load config returns defaults when no args provided."""
        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config()
        assert config == FeedConfig()

    def test_env_var_override(self) -> None:
        """Environment variables override defaults."""
        env = {
            "SHOPCOMPARE_FEED_BASE_URL": "http://env-url:8080",
            "SHOPCOMPARE_FEED_API_KEY": "env-key",
            "SHOPCOMPARE_FEED_BUFFER_SIZE": "2000",
            "SHOPCOMPARE_FEED_FLUSH_INTERVAL": "15.0",
            "SHOPCOMPARE_FEED_BATCH_SIZE": "25",
            "SHOPCOMPARE_FEED_HTTP_TIMEOUT": "3",
        }
        with mock.patch.dict(os.environ, env, clear=False):
            config = load_config()

        assert config.base_url == "http://env-url:8080"
        assert config.api_key == "env-key"
        assert config.buffer_size == 2000
        assert config.flush_interval == 15.0
        assert config.batch_size == 25
        assert config.http_timeout == 3.0
        assert isinstance(config.http_timeout, float)

    def test_sdk_section_of_shared_yaml(self) -> None:
        """Only the sdk section of a shared file applies."""
        yaml_path = _write_yaml(
            """
sdk:
  base_url: http://yaml-url:8000
  api_key: yaml-key
  buffer_size: 3000
api:
  database_url: sqlite+aiosqlite:///./shared.db
"""
        )
        try:
            with mock.patch.dict(os.environ, {}, clear=True):
                config = load_config(config_file=yaml_path)
            assert config.base_url == "http://yaml-url:8000"
            assert config.api_key == "yaml-key"
            assert config.buffer_size == 3000
        finally:
            os.unlink(yaml_path)

    def test_kwargs_override_yaml_and_env(self) -> None:
        """Kwargs override both YAML and env vars."""
        yaml_path = _write_yaml("base_url: http://yaml-url:8000")
        try:
            env = {"SHOPCOMPARE_FEED_BASE_URL": "http://env-url:9000"}
            with mock.patch.dict(os.environ, env, clear=False):
                from_env = load_config(config_file=yaml_path)
                from_kwargs = load_config(
                    config_file=yaml_path, base_url="http://kwarg-url:7000"
                )

            assert from_env.base_url == "http://env-url:9000"
            assert from_kwargs.base_url == "http://kwarg-url:7000"
        finally:
            os.unlink(yaml_path)

    def test_nonexistent_yaml_file_ignored(self) -> None:
        """Nonexistent YAML file is silently ignored."""
        config = load_config(config_file="/nonexistent/path.yaml")
        assert config.buffer_size == 1000

    def test_none_kwargs_ignored(self) -> None:
        """None kwargs don't override existing values."""
        env = {"SHOPCOMPARE_FEED_BASE_URL": "http://env-url:8080"}
        with mock.patch.dict(os.environ, env, clear=False):
            config = load_config(base_url=None)

        assert config.base_url == "http://env-url:8080"


    def test_config_file_discovered_from_cwd(self, tmp_path, monkeypatch) -> None:
        """shopcompare.config.yaml in the working directory is used by default."""
        (tmp_path / "shopcompare.config.yaml").write_text(
            "sdk:\n  base_url: http://yaml-url:8000\n  batch_size: 10\n"
            "api:\n  page_size: 50\n"
        )
        monkeypatch.chdir(tmp_path)

        with mock.patch.dict(os.environ, {}, clear=True):
            config = load_config()

        assert config.base_url == "http://yaml-url:8000"
        assert config.batch_size == 10


class TestConfigImports:
    """Tests for config module imports."""

    def test_importable_from_sdk(self) -> None:
        """Config classes can be imported from sdk package."""
        from sdk import FeedConfig, load_config

        assert FeedConfig is not None
        assert load_config is not None
