"""CLI configuration management."""

import os
import logging
from pathlib import Path
from typing import Optional, Dict, Any, List

import yaml
from pydantic import BaseModel, Field

from ..config.llm_config import LLMConfig
from ..config.store_config import StoreConfig

logger = logging.getLogger(__name__)


class CLIConfig(BaseModel):
    """CLI configuration model."""

    # Display settings
    focus_mode: bool = Field(
        default=False, description="Show only the next actionable step"
    )
    show_estimates: bool = Field(default=True, description="Show minute estimates")

    # Overrides passed to StoreConfig / LLMConfig
    store: Dict[str, Any] = Field(default_factory=dict)
    llm: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        """Pydantic configuration."""

        extra = "ignore"

    def store_config(self) -> StoreConfig:
        """Store configuration with file overrides applied over the environment."""
        return StoreConfig(**self.store)

    def llm_config(self) -> LLMConfig:
        """LLM configuration with file overrides applied over the environment."""
        return LLMConfig(**self.llm)


def get_config_paths() -> List[Path]:
    """
    Get configuration file paths in priority order.

    Returns:
        List of paths, highest priority last
    """
    return [
        Path.home() / ".microwin" / "config.yaml",
        Path.cwd() / ".microwin.yaml",
    ]


def load_config(config_path: Optional[str] = None) -> CLIConfig:
    """
    Load CLI configuration from files.

    Configuration is merged in this order (later overrides earlier):
    1. Default values
    2. Global config (~/.microwin/config.yaml)
    3. Project config (./.microwin.yaml)
    4. Explicit config_path if provided
    5. MICROWIN_FOCUS_MODE environment variable

    Args:
        config_path: Optional explicit config file path

    Returns:
        Merged CLIConfig instance
    """
    merged_config: Dict[str, Any] = {}

    config_paths = get_config_paths()
    if config_path:
        config_paths.append(Path(config_path))

    for path in config_paths:
        if path.exists():
            try:
                with open(path) as f:
                    file_config = yaml.safe_load(f) or {}
                merged_config.update(file_config)
                logger.debug(f"Loaded config from {path}")
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {path}: {e}")

    focus = os.getenv("MICROWIN_FOCUS_MODE")
    if focus is not None:
        merged_config["focus_mode"] = focus.lower() in ("true", "1", "yes")

    return CLIConfig(**merged_config)
