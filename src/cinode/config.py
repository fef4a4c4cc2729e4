"""Configuration loading for cinode blob stores."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from cinode.blobstore.dirwriter import MAX_SIMPLE_DIR_ENTRIES
from cinode.blobstore.filewriter import BLOCK_SIZE


DEFAULT_DATA_DIR = Path.home() / ".cinode"


class StoreConfig(BaseModel):
    """Store-level configuration."""
    data_dir: Path = Field(default=DEFAULT_DATA_DIR)
    blob_dir: Path | None = None  # Defaults to data_dir/blobs

    # Splitting thresholds; changing them changes the ids of large content
    block_size: int = Field(default=BLOCK_SIZE, ge=1)
    max_simple_dir_entries: int = Field(default=MAX_SIMPLE_DIR_ENTRIES, ge=2)

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    structured_logging: bool = True  # JSON format vs human-readable
    log_file: str | None = None  # Optional file path for logs

    def model_post_init(self, __context: Any) -> None:
        """Set derived paths after initialization."""
        if self.blob_dir is None:
            self.blob_dir = self.data_dir / "blobs"


def load_config(config_path: Path | None = None) -> StoreConfig:
    """Load store configuration from YAML file.

    Args:
        config_path: Path to config file. Defaults to ~/.cinode/config.yaml

    Returns:
        StoreConfig instance
    """
    if config_path is None:
        config_path = DEFAULT_DATA_DIR / "config.yaml"

    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return StoreConfig(**data)

    return StoreConfig()


def ensure_directories(config: StoreConfig) -> None:
    """Ensure all required directories exist."""
    config.data_dir.mkdir(parents=True, exist_ok=True)

    if config.blob_dir:
        config.blob_dir.mkdir(parents=True, exist_ok=True)
