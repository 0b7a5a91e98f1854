"""General application routes: health and the password plus passkey login."""
from __future__ import annotations

from typing import Mapping, Optional

from flask import jsonify, request

from ..config import app
from ..identity import GoTrueClient
from ..login import LoginFlow, SecondFactorPolicy
from ..passkeys import get_passkey_service

_LOGIN_EXTENSION_KEY = "securevote.login"


def _login_flow() -> Optional[LoginFlow]:
    flow = app.extensions.get(_LOGIN_EXTENSION_KEY)
    if flow is not None:
        return flow

    base_url = app.config.get("SUPABASE_URL")
    api_key = app.config.get("SUPABASE_ANON_KEY")
    if not base_url or not api_key:
        return None

    client = GoTrueClient(base_url, api_key)
    flow = LoginFlow(
        client,
        get_passkey_service(app),
        policy=SecondFactorPolicy(app.config.get("PASSKEY_SECOND_FACTOR") or "preferred"),
        roles=client,
    )
    app.extensions[_LOGIN_EXTENSION_KEY] = flow
    return flow


@app.route("/api/health", methods=["GET"])
def health_check():
    return jsonify({"status": "healthy", "routes": len(list(app.url_map.iter_rules()))})


@app.route("/api/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, Mapping):
        payload = {}

    email = payload.get("email")
    password = payload.get("password")
    if not isinstance(email, str) or not email.strip() or not isinstance(password, str) or not password:
        return jsonify({"success": False, "error": "Please enter your email and password"}), 400

    flow = _login_flow()
    if flow is None:
        app.logger.error("Login requested but no identity provider is configured.")
        return jsonify({"success": False, "error": "Sign in is not available right now."}), 503

    outcome = flow.login(email.strip(), password)
    if not outcome.success:
        app.logger.info("Login for %s stopped at %s.", email.strip(), outcome.step.value)
        return jsonify(outcome.to_dict()), 401

    return jsonify(outcome.to_dict())
