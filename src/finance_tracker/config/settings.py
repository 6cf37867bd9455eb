from pathlib import Path
import json
import os
from typing import Dict, Any

# Package defaults (bundled with code)
PACKAGE_CONFIG_DIR = Path(__file__).parent / "defaults"

# User configs (in project root, gitignored)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
DEFAULT_USER_CONFIG_DIR = PROJECT_ROOT / "config"

CONFIG_DIR_ENV = "FINANCE_TRACKER_CONFIG_DIR"
DB_PATH_ENV = "FINANCE_TRACKER_DB"
DEFAULT_DB_PATH = "data/transactions.db"


def user_config_dir() -> Path:
    """User config directory, overridable through FINANCE_TRACKER_CONFIG_DIR"""
    override = os.getenv(CONFIG_DIR_ENV)
    return Path(override) if override else DEFAULT_USER_CONFIG_DIR


def default_db_path() -> str:
    """Database location, overridable through FINANCE_TRACKER_DB"""
    return os.getenv(DB_PATH_ENV) or DEFAULT_DB_PATH


class ConfigLoader:
    """Load configuration with user overrides"""

    @staticmethod
    def load_config(config_name: str) -> Dict[str, Any]:
        """
        Load config with fallback: user config -> default config

        Args:
            config_name: Name of the config file (e.g., 'parsers.json')

        Raises:
            FileNotFoundError: If no config file was found

        Returns:
            Parsed JSON configuration
        """
        user_config_path = user_config_dir() / config_name
        if user_config_path.exists():
            with open(user_config_path) as f:
                return json.load(f)

        default_config_path = PACKAGE_CONFIG_DIR / config_name
        if default_config_path.exists():
            with open(default_config_path) as f:
                return json.load(f)

        raise FileNotFoundError(
            f"Config file '{config_name}' not found in:\n"
            f" - {user_config_path}\n"
            f" - {default_config_path}"
        )

    @staticmethod
    def load_parsers_config():
        """Load parsers registry configuration"""
        return ConfigLoader.load_config('parsers.json')

    @staticmethod
    def load_category_map():
        """
        Load the import category mapping (source label -> category).

        Returns an empty mapping when the user hasn't defined one.
        """
        try:
            return ConfigLoader.load_config('category_map.json')
        except FileNotFoundError:
            return {}
