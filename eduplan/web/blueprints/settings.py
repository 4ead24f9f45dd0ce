"""Credential selection: choose the AI provider and save its API key."""

import logging
import os

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for

from eduplan.generation_client import PROVIDER_REGISTRY, get_client, get_provider_info
from eduplan.web.blueprints.helpers import login_required
from eduplan.web.config_utils import save_api_key_to_env, save_config

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__)


@settings_bp.route("/settings/credential", methods=["GET", "POST"])
@login_required
def credential():
    """Pick a provider and API key; every open session gets the new client."""
    config = current_app.config["APP_CONFIG"]

    if request.method == "POST":
        provider = request.form.get("provider", "gemini").strip()
        api_key = request.form.get("api_key", "").strip()

        if provider not in PROVIDER_REGISTRY:
            flash("Provedor de IA inválido.", "error")
            return redirect(url_for("settings.credential"), code=303)

        config.setdefault("llm", {})["provider"] = provider
        env_var = PROVIDER_REGISTRY[provider].get("env_var")
        if env_var and api_key:
            save_api_key_to_env(env_var, api_key, current_app.config["ENV_PATH"])
            os.environ[env_var] = api_key

        config_path = current_app.config.get("CONFIG_PATH")
        if config_path:
            save_config(config, config_path)

        for controller in current_app.extensions["eduplan_controllers"].controllers():
            controller.credential_updated(get_client(config))
        logger.info("Generation provider set to %s", provider)

        if g.controller.client.has_credential():
            flash("IA conectada.", "success")
        else:
            flash("Informe uma chave de acesso para usar a IA.", "warning")
        return redirect(url_for("planner.index"), code=303)

    return render_template(
        "settings/credential.html",
        providers=get_provider_info(config),
        has_key=g.controller.client.has_credential(),
    )
