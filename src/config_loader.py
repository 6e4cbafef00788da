"""
Configuration Loader - Manages YAML configuration and environment variables
"""
import yaml
import os
from typing import Any, Optional

from src.logging_utils import configure_logging
from src.sequencing.config import SequencingConfig, default_sequencing_config

_KNOWN_SECTIONS = ('constraints', 'search', 'logging')


class Config:
    """Configuration manager for the sequencer"""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = config_path
        self.config = self._load_config()
        self._validate_config()

    def _load_config(self) -> dict:
        """Load configuration from YAML file"""
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _validate_config(self):
        """Validate section shapes and integer fields"""
        if not isinstance(self.config, dict):
            raise ValueError(f"Top level of {self.config_path} must be a mapping")

        for section in _KNOWN_SECTIONS:
            value = self.config.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"Configuration section '{section}' must be a mapping")

        int_fields = [
            ('constraints', 'genre_run_bound'),
            ('constraints', 'energy_max_jump'),
            ('constraints', 'popular_threshold'),
            ('constraints', 'less_played_threshold'),
            ('constraints', 'high_play_threshold'),
            ('search', 'node_budget'),
            ('search', 'workers'),
            ('search', 'fan_out_depth'),
        ]
        for section, field in int_fields:
            value = self.get(section, field)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
                raise ValueError(f"Configuration field {section}.{field} must be an integer, got {value!r}")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get configuration value

        Args:
            section: Configuration section
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value or default
        """
        if section not in self.config or self.config[section] is None:
            return default
        return self.config[section].get(key, default)

    # Constraint parameters
    @property
    def genre_run_bound(self) -> int:
        return self.get('constraints', 'genre_run_bound', 4)

    @property
    def energy_max_jump(self) -> int:
        return self.get('constraints', 'energy_max_jump', 5)

    @property
    def popular_threshold(self) -> int:
        return self.get('constraints', 'popular_threshold', 3)

    @property
    def less_played_threshold(self) -> int:
        return self.get('constraints', 'less_played_threshold', 1)

    @property
    def high_play_threshold(self) -> int:
        return self.get('constraints', 'high_play_threshold', 5)

    # Search budget
    @property
    def node_budget(self) -> Optional[int]:
        return self.get('search', 'node_budget', 200_000)

    @property
    def time_budget_seconds(self) -> Optional[float]:
        return self.get('search', 'time_budget_seconds', 10.0)

    @property
    def random_seed(self) -> Optional[int]:
        """Get candidate shuffling seed (with environment variable override)"""
        env = os.getenv('SEQUENCER_SEED')
        if env:
            return int(env)
        return self.get('search', 'random_seed')

    @property
    def workers(self) -> int:
        """Get worker count (with environment variable override)"""
        env = os.getenv('SEQUENCER_WORKERS')
        if env:
            return int(env)
        return self.get('search', 'workers', 1)

    @property
    def fan_out_depth(self) -> int:
        return self.get('search', 'fan_out_depth', 1)

    # Logging
    @property
    def log_level(self) -> str:
        return os.getenv('LOG_LEVEL') or self.get('logging', 'level', 'INFO')

    @property
    def log_file(self) -> Optional[str]:
        return os.getenv('LOG_FILE') or self.get('logging', 'file')

    def configure_logging(self, force: bool = False) -> bool:
        """Install log handlers from the logging section (see src.logging_utils)."""
        return configure_logging(self.log_level, self.log_file, force=force)

    def sequencing_config(self) -> SequencingConfig:
        """Resolve typed sequencing config, applying environment overrides."""
        overrides = {
            'constraints': dict(self.config.get('constraints') or {}),
            'search': dict(self.config.get('search') or {}),
        }
        overrides['search']['random_seed'] = self.random_seed
        overrides['search']['workers'] = self.workers
        return default_sequencing_config(overrides)
