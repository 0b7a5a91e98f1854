"""Composition of the passkey components into one service object."""
from __future__ import annotations

from typing import Callable, Mapping, Optional

from flask import Flask

from .authentication import CredentialAuthenticator
from .config import (
    PasskeySettings,
    determine_origin,
    is_embedded_request,
    load_passkey_settings,
)
from .platform import Fido2Platform, Platform
from .registration import CredentialRegistrar
from .results import AuthResult, RegistrationResult
from .storage import CredentialStore, FileCredentialStore, LocalCredentialIndex
from .support import SupportProbe, SupportResult

__all__ = [
    "PasskeyService",
    "create_passkey_service",
    "get_passkey_service",
    "install_passkey_service",
]

_EXTENSION_KEY = "securevote.passkeys"


class PasskeyService:
    def __init__(
        self,
        platform: Platform,
        store: CredentialStore,
        settings: Optional[PasskeySettings] = None,
        embedded: Callable[[], bool] = is_embedded_request,
    ) -> None:
        self.settings = settings or PasskeySettings()
        self.index = LocalCredentialIndex(store)
        self.probe = SupportProbe(platform, embedded=embedded)
        self.registrar = CredentialRegistrar(self.probe, platform, self.index, self.settings)
        self.authenticator = CredentialAuthenticator(self.probe, platform, self.index, self.settings)

    def check_support(self) -> bool:
        return self.probe.check_support()

    def support_status(self) -> SupportResult:
        return self.probe.probe()

    def register(self, user_email: str, user_id: str) -> RegistrationResult:
        return self.registrar.register(user_email, user_id)

    def authenticate(self, user_email: str, user_id: str) -> AuthResult:
        return self.authenticator.authenticate(user_email, user_id)

    def has_passkey(self, user_id: str) -> bool:
        return self.index.has(user_id)

    def remove_passkey(self, user_id: str) -> None:
        self.index.remove(user_id)


def create_passkey_service(config: Mapping[str, object]) -> PasskeyService:
    """Build the production service from a Flask config mapping."""

    platform = Fido2Platform(
        determine_origin,
        allow_security_keys=bool(config.get("PASSKEY_ALLOW_SECURITY_KEYS")),
    )
    store = FileCredentialStore(str(config.get("SECUREVOTE_STORAGE_DIR")))
    return PasskeyService(platform, store, load_passkey_settings(config))


def get_passkey_service(flask_app: Flask) -> PasskeyService:
    """Return the service owned by ``flask_app``, creating it on first use."""

    service = flask_app.extensions.get(_EXTENSION_KEY)
    if service is None:
        service = create_passkey_service(flask_app.config)
        flask_app.extensions[_EXTENSION_KEY] = service
    return service


def install_passkey_service(flask_app: Flask, service: PasskeyService) -> None:
    flask_app.extensions[_EXTENSION_KEY] = service
