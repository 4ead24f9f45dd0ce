"""
Flask application factory for the EduPlan web frontend.
"""

import logging
import os
import secrets

import yaml
from dotenv import dotenv_values, set_key
from flask import Flask
from flask_wtf.csrf import CSRFProtect

from eduplan.catalog import DURATIONS, GRADES, PLANNING_TYPES, SUBJECTS, TEST_KINDS
from eduplan.database import get_engine, init_db
from eduplan.web.blueprints import register_blueprints
from eduplan.web.controllers import ControllerRegistry

logger = logging.getLogger(__name__)

csrf = CSRFProtect()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

# env var -> (config section, key)
ENV_OVERRIDES = {
    "DATABASE_PATH": ("paths", "database_file"),
    "LLM_PROVIDER": ("llm", "provider"),
}


def _secret_key_from_env_file(env_path):
    """Return SECRET_KEY from ``env_path``, creating and saving one if absent.

    Each installation gets its own random key with nothing to configure.
    """
    if os.path.exists(env_path):
        existing = dotenv_values(env_path).get("SECRET_KEY")
        if existing:
            return existing

    key = secrets.token_hex(32)
    try:
        if not os.path.exists(env_path):
            open(env_path, "a").close()
        set_key(env_path, "SECRET_KEY", key, quote_mode="never")
    except OSError:
        logger.warning("Could not persist SECRET_KEY to %s; sessions end on restart", env_path)
    return key


def load_config(config_path="config.yaml"):
    """Read config.yaml; a missing file means all defaults."""
    if not os.path.exists(config_path):
        logger.warning("%s not found; using defaults", config_path)
        return {}
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(config):
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config.setdefault(section, {})[key] = value
    return config


def create_app(config=None):
    """
    Build the EduPlan Flask app.

    Args:
        config: Application config dict (paths, llm, auth, camera, web).
            When omitted, the file named by EDUPLAN_CONFIG (default
            config.yaml) is read and settings changes are written back to it.
    """
    app = Flask(
        __name__,
        template_folder=os.path.join(PROJECT_ROOT, "templates"),
        static_folder=os.path.join(PROJECT_ROOT, "static"),
    )

    if config is None:
        config_path = os.environ.get("EDUPLAN_CONFIG", "config.yaml")
        config = load_config(config_path)
        app.config["CONFIG_PATH"] = config_path
    app.config["APP_CONFIG"] = apply_env_overrides(config)

    env_path = os.path.join(PROJECT_ROOT, ".env")
    app.config["ENV_PATH"] = env_path
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY") or _secret_key_from_env_file(env_path)
    app.config.update(
        MAX_CONTENT_LENGTH=8 * 1024 * 1024,  # camera frames
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=bool(os.environ.get("FLASK_HTTPS")),
    )

    # Test fixtures may switch WTF_CSRF_ENABLED off after creation.
    csrf.init_app(app)

    engine = get_engine(
        config.get("paths", {}).get("database_file", "eduplan.db"),
        url=os.environ.get("DATABASE_URL"),
    )
    init_db(engine)
    app.config["DB_ENGINE"] = engine
    logger.info("Using database %s", engine.url)

    app.extensions["eduplan_controllers"] = ControllerRegistry(
        max_sessions=config.get("web", {}).get("max_sessions", 256)
    )

    @app.context_processor
    def inject_catalog():
        return {
            "subjects": SUBJECTS,
            "grades": GRADES,
            "planning_types": PLANNING_TYPES,
            "durations": DURATIONS,
            "test_kinds": TEST_KINDS,
        }

    register_blueprints(app)
    return app
