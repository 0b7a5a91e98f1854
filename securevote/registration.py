"""One-time passkey registration ceremony."""
from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional, Sequence

from fido2.server import Fido2Server
from fido2.webauthn import (
    AuthenticatorAttachment,
    PublicKeyCredentialCreationOptions,
    PublicKeyCredentialParameters,
    PublicKeyCredentialRpEntity,
    PublicKeyCredentialType,
    PublicKeyCredentialUserEntity,
    ResidentKeyRequirement,
)

from .config import PasskeySettings, build_rp_entity
from .errors import (
    REGISTRATION_MESSAGES,
    UNSUPPORTED_ENVIRONMENT_MESSAGE,
    CeremonyErrorKind,
    classify_ceremony_error,
)
from .platform import Platform
from .results import RegistrationResult
from .storage import CredentialRecord, LocalCredentialIndex
from .support import SupportProbe

__all__ = ["PASSKEY_ALGORITHMS", "CredentialRegistrar"]

LOGGER = logging.getLogger(__name__)

# ES256 first, then RS256.
PASSKEY_ALGORITHMS: Sequence[int] = (-7, -257)


class CredentialRegistrar:
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

    def _creation_options(
        self, user_email: str, user_id: str, challenge: bytes
    ) -> PublicKeyCredentialCreationOptions:
        server = Fido2Server(self._rp_factory(), attestation=self.settings.attestation)
        server.timeout = self.settings.timeout_ms
        server.allowed_algorithms = [
            PublicKeyCredentialParameters(type=PublicKeyCredentialType.PUBLIC_KEY, alg=alg)
            for alg in PASSKEY_ALGORITHMS
        ]

        # The returned state is dropped: nothing verifies the attestation against it.
        options, _state = server.register_begin(
            PublicKeyCredentialUserEntity(
                id=user_id.encode("utf-8"),
                name=user_email,
                display_name=user_email,
            ),
            resident_key_requirement=ResidentKeyRequirement.PREFERRED,
            user_verification=self.settings.user_verification,
            authenticator_attachment=AuthenticatorAttachment.PLATFORM,
            challenge=challenge,
        )
        return options.public_key

    def register(self, user_email: str, user_id: str) -> RegistrationResult:
        """Create a passkey for ``user_id`` and remember it locally.

        The index is written only after the authenticator reports success, so
        a failed ceremony leaves any previous record untouched.
        """

        if not self.probe.check_support():
            return RegistrationResult.failed(
                CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT, UNSUPPORTED_ENVIRONMENT_MESSAGE
            )

        challenge = secrets.token_bytes(self.settings.challenge_length)

        try:
            options = self._creation_options(user_email, user_id, challenge)
            credential = self.platform.create(options)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("Passkey registration error for user %s: %r", user_id, exc)
            kind = classify_ceremony_error(exc)
            return RegistrationResult.failed(kind, REGISTRATION_MESSAGES[kind])

        if credential is None or not credential.id:
            LOGGER.warning("Authenticator returned no credential for user %s.", user_id)
            kind = CeremonyErrorKind.TRANSIENT_FAILURE
            return RegistrationResult.failed(kind, REGISTRATION_MESSAGES[kind])

        try:
            self.index.put(
                CredentialRecord(
                    credential_id=credential.id,
                    user_email=user_email,
                    user_id=user_id,
                )
            )
        except OSError as exc:
            LOGGER.error("Unable to store passkey record for user %s: %s", user_id, exc)
            kind = CeremonyErrorKind.TRANSIENT_FAILURE
            return RegistrationResult.failed(kind, REGISTRATION_MESSAGES[kind])

        LOGGER.info("Registered passkey %s for user %s.", credential.id, user_id)
        return RegistrationResult.ok(credential.id)
