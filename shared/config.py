"""Shared configuration utilities for the ShopCompare API and feed SDK.

Both the API and the SDK read from a single config file:
`shopcompare.config.yaml` in the project root.

Configuration priority (highest to lowest):
1. Explicit kwargs passed to load functions
2. Environment variables (SHOPCOMPARE_*)
3. shopcompare.config.yaml file (auto-discovered from cwd)
4. Default values

Example shopcompare.config.yaml:
```yaml
sdk:
  base_url: http://localhost:8000
  api_key: your-api-key
  buffer_size: 1000
  flush_interval: 5.0

api:
  database_url: postgresql+asyncpg://localhost:5432/shopcompare
  default_category: Smartphones
  debug: false
```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

# Default config filename - users place this in their project root
CONFIG_FILENAME = "shopcompare.config.yaml"


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find shopcompare.config.yaml by searching from start_path up to root.

    Args:
        start_path: Directory to start search from (default: cwd).

    Returns:
        Path to config file if found, None otherwise.
    """
    current = Path(start_path) if start_path else Path.cwd()

    for parent in [current, *current.parents]:
        config_path = parent / CONFIG_FILENAME
        if config_path.exists():
            return config_path

    return None


def load_yaml_file(config_file: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Args:
        config_file: Path to YAML config file.

    Returns:
        Parsed YAML content as dict, or empty dict if file doesn't exist.
    """
    try:
        import yaml
    except ImportError as err:
        raise ImportError(
            "PyYAML is required to load config files. Install with: pip install pyyaml"
        ) from err

    path = Path(config_file)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


def get_section(config: dict[str, Any], section: str) -> dict[str, Any]:
    """Extract a section from config dict.

    Args:
        config: Full config dict.
        section: Section name ('sdk' or 'api').

    Returns:
        Section dict, or empty dict if not found.
    """
    return config.get(section, {}) if isinstance(config.get(section), dict) else {}


def load_section(config_file: str | Path, section: str | None) -> dict[str, Any]:
    """Load a YAML file and return one section of it.

    Files without `api:`/`sdk:` sections are treated as flat and returned
    whole, so a dedicated per-service file keeps working.
    """
    data = load_yaml_file(config_file)
    if section and section in data:
        return get_section(data, section)
    return data
