"""
Writers for the two files the settings page changes: API keys go to
``.env`` (never committed), everything else to ``config.yaml``.
"""

import logging
import os

import yaml
from dotenv import set_key

logger = logging.getLogger(__name__)


def save_api_key_to_env(key_name, value, env_path):
    """Set ``key_name`` in the .env file, adding the file or line as needed."""
    if not os.path.exists(env_path):
        open(env_path, "a").close()
    set_key(env_path, key_name, value, quote_mode="never")
    logger.info("Saved %s to %s", key_name, env_path)


def save_config(config, config_path="config.yaml"):
    """Write the config dict back to ``config_path``, keeping key order."""
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
