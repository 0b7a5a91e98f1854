"""Configuration and application setup for the SecureVote passkey service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from flask import Flask, has_request_context, request
from fido2.webauthn import (
    AttestationConveyancePreference,
    PublicKeyCredentialRpEntity,
    UserVerificationRequirement,
)

app = Flask(__name__)


def _env_flag(name: str) -> Optional[bool]:
    """Return ``True`` or ``False`` when the named env var is explicitly set."""

    raw_value = os.environ.get(name)
    if raw_value is None:
        return None

    normalised = raw_value.strip().lower()
    if normalised in {"", "0", "false", "off", "no"}:
        return False
    return True


def _env_choice(name: str, choices: Mapping[str, str], default: str) -> str:
    raw_value = os.environ.get(name)
    if raw_value is None:
        return default

    normalised = raw_value.strip().lower()
    return choices.get(normalised, default)


_USER_VERIFICATION_CHOICES = {"required": "required", "preferred": "preferred"}
_ATTESTATION_CHOICES = {"none": "none", "indirect": "indirect", "direct": "direct"}
_SECOND_FACTOR_CHOICES = {"required": "required", "preferred": "preferred"}

EMBEDDED_FETCH_DESTINATIONS = frozenset(
    {"iframe", "frame", "embed", "object", "fencedframe"}
)

app.config.setdefault("SECUREVOTE_RP_NAME", os.environ.get("SECUREVOTE_RP_NAME", "SecureVote"))
app.config.setdefault("SECUREVOTE_RP_ID", os.environ.get("SECUREVOTE_RP_ID"))
app.config.setdefault("SECUREVOTE_DEV_RP_ID", os.environ.get("SECUREVOTE_DEV_RP_ID", "localhost"))
app.config.setdefault("SECUREVOTE_ORIGIN", os.environ.get("SECUREVOTE_ORIGIN"))
app.config.setdefault(
    "PASSKEY_USER_VERIFICATION",
    _env_choice("PASSKEY_USER_VERIFICATION", _USER_VERIFICATION_CHOICES, "required"),
)
app.config.setdefault(
    "PASSKEY_ATTESTATION",
    _env_choice("PASSKEY_ATTESTATION", _ATTESTATION_CHOICES, "direct"),
)
app.config.setdefault(
    "PASSKEY_SECOND_FACTOR",
    _env_choice("PASSKEY_SECOND_FACTOR", _SECOND_FACTOR_CHOICES, "preferred"),
)
app.config.setdefault(
    "PASSKEY_ALLOW_SECURITY_KEYS", bool(_env_flag("PASSKEY_ALLOW_SECURITY_KEYS"))
)
app.config.setdefault("SUPABASE_URL", os.environ.get("SUPABASE_URL"))
app.config.setdefault("SUPABASE_ANON_KEY", os.environ.get("SUPABASE_ANON_KEY"))

# Keep passkey records next to this module unless told otherwise, regardless of CWD.
basepath = os.path.abspath(os.path.dirname(__file__))
app.config.setdefault(
    "SECUREVOTE_STORAGE_DIR",
    os.environ.get("SECUREVOTE_STORAGE_DIR", os.path.join(basepath, "passkeys")),
)

CEREMONY_TIMEOUT_MS = 60000
CHALLENGE_LENGTH = 32


@dataclass(frozen=True)
class PasskeySettings:
    """Tunables shared by registration and authentication ceremonies."""

    rp_name: str = "SecureVote"
    user_verification: UserVerificationRequirement = UserVerificationRequirement.REQUIRED
    attestation: AttestationConveyancePreference = AttestationConveyancePreference.DIRECT
    timeout_ms: int = CEREMONY_TIMEOUT_MS
    challenge_length: int = CHALLENGE_LENGTH


def load_passkey_settings(config: Optional[Mapping[str, object]] = None) -> PasskeySettings:
    """Build :class:`PasskeySettings` from a Flask style config mapping."""

    source = app.config if config is None else config
    return PasskeySettings(
        rp_name=str(source.get("SECUREVOTE_RP_NAME") or "SecureVote"),
        user_verification=UserVerificationRequirement(
            source.get("PASSKEY_USER_VERIFICATION") or "required"
        ),
        attestation=AttestationConveyancePreference(
            source.get("PASSKEY_ATTESTATION") or "direct"
        ),
    )


def determine_rp_id(explicit_id: Optional[str] = None) -> str:
    """Resolve the relying party identifier for the current request."""

    if explicit_id:
        return explicit_id

    configured_id = app.config.get("SECUREVOTE_RP_ID")
    if isinstance(configured_id, str) and configured_id.strip():
        return configured_id.strip()

    dev_id = app.config.get("SECUREVOTE_DEV_RP_ID") or "localhost"

    if has_request_context():
        host = request.host.strip().lower()
        if host.startswith("["):
            host = host[1:].split("]", 1)[0]
        else:
            host = host.split(":", 1)[0]
        if not host or host in {"127.0.0.1", "::1"}:
            return dev_id
        return host

    return dev_id


def build_rp_entity(
    *,
    rp_id: Optional[str] = None,
    rp_name: Optional[str] = None,
) -> PublicKeyCredentialRpEntity:
    """Create a ``PublicKeyCredentialRpEntity`` for the active request."""

    rp_name_value = rp_name or app.config.get("SECUREVOTE_RP_NAME") or "SecureVote"
    return PublicKeyCredentialRpEntity(name=rp_name_value, id=determine_rp_id(rp_id))


def determine_origin() -> str:
    """Origin reported in collected client data for local ceremonies."""

    configured = app.config.get("SECUREVOTE_ORIGIN")
    if isinstance(configured, str) and configured.strip():
        return configured.strip().rstrip("/")

    if has_request_context():
        origin_header = request.headers.get("Origin")
        if origin_header:
            return origin_header.rstrip("/")

    return f"https://{determine_rp_id()}"


def is_embedded_request() -> bool:
    """Return ``True`` when the calling page is framed inside another context."""

    if not has_request_context():
        return False

    destination = request.headers.get("Sec-Fetch-Dest", "").strip().lower()
    return destination in EMBEDDED_FETCH_DESTINATIONS


__all__ = [
    "app",
    "basepath",
    "build_rp_entity",
    "determine_origin",
    "determine_rp_id",
    "is_embedded_request",
    "load_passkey_settings",
    "CEREMONY_TIMEOUT_MS",
    "CHALLENGE_LENGTH",
    "EMBEDDED_FETCH_DESTINATIONS",
    "PasskeySettings",
]
