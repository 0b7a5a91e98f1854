"""Routes for passkey support checks, registration and authentication."""
from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

from flask import jsonify, request

from ..config import app
from ..passkeys import get_passkey_service


def _required_fields(*names: str) -> Tuple[Optional[Dict[str, str]], Optional[str]]:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, Mapping):
        return None, "Request body must be a JSON object"

    values: Dict[str, str] = {}
    for name in names:
        value = payload.get(name)
        if not isinstance(value, str) or not value.strip():
            return None, f"Missing required field '{name}'"
        values[name] = value.strip()
    return values, None


@app.route("/api/passkey/support", methods=["GET"])
def passkey_support():
    status = get_passkey_service(app).support_status()
    return jsonify(status.to_dict())


@app.route("/api/passkey/users/<user_id>", methods=["GET"])
def passkey_status(user_id: str):
    return jsonify({"userId": user_id, "registered": get_passkey_service(app).has_passkey(user_id)})


@app.route("/api/passkey/users/<user_id>", methods=["DELETE"])
def passkey_remove(user_id: str):
    get_passkey_service(app).remove_passkey(user_id)
    app.logger.info("Removed passkey record for user %s.", user_id)
    return jsonify({"status": "OK"})


@app.route("/api/passkey/register", methods=["POST"])
def passkey_register():
    fields, error = _required_fields("email", "userId")
    if fields is None:
        return jsonify({"success": False, "error": error}), 400

    result = get_passkey_service(app).register(fields["email"], fields["userId"])
    if not result.success:
        app.logger.info(
            "Passkey registration for %s did not complete: %s",
            fields["userId"],
            result.reason.value if result.reason else "unknown",
        )
    return jsonify(result.to_dict())


@app.route("/api/passkey/authenticate", methods=["POST"])
def passkey_authenticate():
    fields, error = _required_fields("email", "userId")
    if fields is None:
        return jsonify({"success": False, "error": error}), 400

    result = get_passkey_service(app).authenticate(fields["email"], fields["userId"])
    return jsonify(result.to_dict())
