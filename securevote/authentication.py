"""Passkey assertion ceremony for returning users."""
from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional

from fido2.server import Fido2Server
from fido2.utils import websafe_decode
from fido2.webauthn import (
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
    PublicKeyCredentialRequestOptions,
    PublicKeyCredentialRpEntity,
    PublicKeyCredentialType,
)

from .config import PasskeySettings, build_rp_entity
from .errors import (
    AUTHENTICATION_MESSAGES,
    UNSUPPORTED_ENVIRONMENT_MESSAGE,
    CeremonyErrorKind,
    classify_ceremony_error,
)
from .platform import Platform
from .results import AuthResult
from .storage import LocalCredentialIndex
from .support import SupportProbe

__all__ = ["CredentialAuthenticator"]

LOGGER = logging.getLogger(__name__)


class CredentialAuthenticator:
    """Confirms the passkey created at registration is still present.

    A successful result is presence evidence only. The assertion signature is
    not checked here and must not be treated as proof of identity.
    """

    def __init__(
        self,
        probe: SupportProbe,
        platform: Platform,
        index: LocalCredentialIndex,
        settings: Optional[PasskeySettings] = None,
        rp_factory: Optional[Callable[[], PublicKeyCredentialRpEntity]] = None,
    ) -> None:
        self.probe = probe
        self.platform = platform
        self.index = index
        self.settings = settings or PasskeySettings()
        self._rp_factory = rp_factory or (lambda: build_rp_entity(rp_name=self.settings.rp_name))

    def _request_options(
        self, credential_id: str, challenge: bytes
    ) -> PublicKeyCredentialRequestOptions:
        server = Fido2Server(self._rp_factory())
        server.timeout = self.settings.timeout_ms

        descriptor = PublicKeyCredentialDescriptor(
            type=PublicKeyCredentialType.PUBLIC_KEY,
            id=websafe_decode(credential_id),
            transports=[AuthenticatorTransport.INTERNAL],
        )
        options, _state = server.authenticate_begin(
            [descriptor],
            user_verification=self.settings.user_verification,
            challenge=challenge,
        )
        return options.public_key

    def authenticate(self, user_email: str, user_id: str) -> AuthResult:
        if not self.probe.check_support():
            return AuthResult.failed(
                CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT, UNSUPPORTED_ENVIRONMENT_MESSAGE
            )

        record = self.index.get(user_id)
        if record is None:
            kind = CeremonyErrorKind.CREDENTIAL_NOT_FOUND
            return AuthResult.failed(kind, AUTHENTICATION_MESSAGES[kind])

        challenge = secrets.token_bytes(self.settings.challenge_length)

        try:
            options = self._request_options(record.credential_id, challenge)
            assertion = self.platform.get(options)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Passkey authentication error for user %s: %r", user_id, exc)
            kind = classify_ceremony_error(exc)
            return AuthResult.failed(kind, AUTHENTICATION_MESSAGES[kind])

        if assertion is None:
            kind = CeremonyErrorKind.TRANSIENT_FAILURE
            return AuthResult.failed(kind, AUTHENTICATION_MESSAGES[kind])

        LOGGER.info("Passkey assertion received for user %s (%s).", user_id, user_email)
        return AuthResult.ok(assertion)
