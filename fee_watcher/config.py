"""
Configuration and logging setup for the priority fee watcher.
"""

import os
import sys
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

from .priority_fee.types import (
    DEFAULT_PRIORITY_FEE_MAP_FREQUENCY_MS,
    PriorityFeeSubscriberMapConfig,
)

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def default_config() -> dict:
    """Return default configuration"""
    return {
        'priority_fees': {
            'endpoint': 'https://dlob.drift.trade',
            'frequency_ms': DEFAULT_PRIORITY_FEE_MAP_FREQUENCY_MS,
            'markets': [
                {'market_type': 'perp', 'market_index': 0},
                {'market_type': 'spot', 'market_index': 1},
            ],
        },
        'logging': {
            'level': 'INFO'
        }
    }


def load_config(config_path: Optional[str] = "config.yaml") -> dict:
    """
    Load configuration from a YAML file, with .env and environment overrides.

    Args:
        config_path: Path to configuration file
    """
    load_dotenv()

    config_file = Path(config_path) if config_path else None
    if config_file is None or not config_file.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        config = default_config()
    else:
        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

    return apply_env_overrides(config)


def apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides to config"""
    fees = config.setdefault('priority_fees', {})

    if os.getenv('PRIORITY_FEE_ENDPOINT'):
        fees['endpoint'] = os.getenv('PRIORITY_FEE_ENDPOINT')

    if os.getenv('PRIORITY_FEE_FREQUENCY_MS'):
        fees['frequency_ms'] = int(os.getenv('PRIORITY_FEE_FREQUENCY_MS'))

    if os.getenv('LOG_LEVEL'):
        config.setdefault('logging', {})['level'] = os.getenv('LOG_LEVEL')

    return config


def subscriber_config(config: dict) -> PriorityFeeSubscriberMapConfig:
    return PriorityFeeSubscriberMapConfig.from_dict(config.get('priority_fees', {}))


def setup_logging(config: dict):
    """Configure loguru sinks"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')

    # Remove default handler
    logger.remove()

    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    log_file = log_config.get('file')
    if log_file:
        logger.add(
            log_file,
            level=level,
            rotation="10 MB",
            retention="7 days"
        )
