"""Simple YAML configuration loader for DictateFlow."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'storage': {
        'data_directory': 'data',
    },
    'history': {
        'max_sessions': 20,
    },
    'recording': {
        'chunk_interval_seconds': 5.0,
        'append_padding_seconds': 5,
        'max_concurrent_chunks': 4,
        'stop_timeout_seconds': 30.0,
    },
    'audio': {
        'sample_rate': 16000,
        'chunk_size': 1024,
        'channels': 1,
    },
    'logging': {
        'level': 'INFO',
        'file_path': 'data/logs/dictateflow.log',
        'console_output': True,
    },
}


def merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


class DictateFlowConfig:
    """DictateFlow configuration loader."""
    
    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.
        
        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used with paths relative to the working directory.
        """
        self.config_file = Path(config_path) if config_path else None
        
        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = merge_dicts(DEFAULT_CONFIG, {})
            return
        
        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")
        
        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()
    
    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "DictateFlowConfig":
        """Build a configuration from an in-memory dictionary over the defaults."""
        config = cls()
        config.config = merge_dicts(DEFAULT_CONFIG, values)
        return config
    
    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e
        
        if not config:
            raise ValueError("Configuration file is empty")
        
        config = merge_dicts(DEFAULT_CONFIG, config)
        self._resolve_paths(config)
        
        logger.info("Configuration loaded successfully")
        return config
    
    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent
        
        data_dir = config['storage']['data_directory']
        if not os.path.isabs(data_dir):
            config['storage']['data_directory'] = str(config_dir / data_dir)
        
        log_path = config['logging']['file_path']
        if not os.path.isabs(log_path):
            config['logging']['file_path'] = str(config_dir / log_path)
    
    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'recording.chunk_interval_seconds').
        
        Args:
            key_path: Dot-separated key path
            default: Default value if key not found
            
        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config
        
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        
        return value
    
    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.
        
        Args:
            key_path: Dot-separated path to config value (e.g., 'history.max_sessions')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config
        
        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]
        
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")
    
    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
    
    def get_settings_path(self) -> str:
        """Get path of the persisted user settings blob."""
        return str(Path(self.get_data_directory()) / "settings.json")
