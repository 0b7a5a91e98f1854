import pytest
from fido2.client import ClientError
from fido2.ctap import CtapError
from fido2.webauthn import (
    AttestationConveyancePreference,
    AuthenticatorAttachment,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from securevote.config import PasskeySettings
from securevote.errors import CeremonyErrorKind
from securevote.passkeys import PasskeyService
from securevote.platform import PlatformCredential, PlatformError


def test_unsupported_environment_is_refused(service, platform, store):
    platform.authenticator_available = False

    result = service.register("a@x.com", "u1")

    assert result.success is False
    assert "not supported" in result.error
    assert result.reason is CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT
    assert platform.create_calls == []
    assert len(store) == 0


def test_embedded_caller_is_refused(service, platform, store, embedded_state):
    embedded_state["embedded"] = True

    result = service.register("a@x.com", "u1")

    assert result.success is False
    assert platform.create_calls == []
    assert len(store) == 0


def test_successful_registration_records_credential(service, platform):
    assert service.has_passkey("u1") is False

    result = service.register("a@x.com", "u1")

    assert result.success is True
    assert result.credential_id == "cred-1"
    assert result.error is None
    assert service.has_passkey("u1") is True

    record = service.index.get("u1")
    assert record.credential_id == "cred-1"
    assert record.user_email == "a@x.com"
    assert record.user_id == "u1"


def test_creation_options(service, platform):
    service.register("a@x.com", "u1")

    options = platform.create_calls[0]
    assert options.rp.name == "SecureVote"
    assert options.rp.id == "localhost"
    assert options.user.id == b"u1"
    assert options.user.name == "a@x.com"
    assert options.user.display_name == "a@x.com"
    assert [param.alg for param in options.pub_key_cred_params] == [-7, -257]
    assert options.authenticator_selection.authenticator_attachment == AuthenticatorAttachment.PLATFORM
    assert options.authenticator_selection.resident_key == ResidentKeyRequirement.PREFERRED
    assert options.authenticator_selection.user_verification == UserVerificationRequirement.REQUIRED
    assert options.timeout == 60000
    assert options.attestation == AttestationConveyancePreference.DIRECT


def test_every_registration_uses_a_fresh_challenge(service, platform):
    service.register("a@x.com", "u1")
    service.register("a@x.com", "u1")

    first, second = (options.challenge for options in platform.create_calls)
    assert len(first) >= 32
    assert len(second) >= 32
    assert first != second


def test_user_verification_tunable(platform, store):
    settings = PasskeySettings(
        user_verification=UserVerificationRequirement.PREFERRED,
        attestation=AttestationConveyancePreference.NONE,
    )
    service = PasskeyService(platform, store, settings, embedded=lambda: False)

    service.register("a@x.com", "u1")

    options = platform.create_calls[0]
    assert options.authenticator_selection.user_verification == UserVerificationRequirement.PREFERRED
    assert options.attestation == AttestationConveyancePreference.NONE


def test_repeated_registration_keeps_one_record(service, platform, store):
    service.register("a@x.com", "u1")
    platform.create_result = PlatformCredential(id="cred-2", raw_id=b"cred-2-raw")
    result = service.register("a@x.com", "u1")

    assert result.credential_id == "cred-2"
    assert store.keys() == ["passkey_u1"]
    assert service.index.get("u1").credential_id == "cred-2"


@pytest.mark.parametrize(
    "error, kind, message",
    [
        (
            PlatformError("NotSupportedError"),
            CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT,
            "Passkey authentication is not supported on this device",
        ),
        (
            PlatformError("NotAllowedError"),
            CeremonyErrorKind.CANCELLED_OR_DENIED,
            "Passkey registration was cancelled or denied",
        ),
        (
            ClientError(ClientError.ERR.DEVICE_INELIGIBLE, CtapError(CtapError.ERR.CREDENTIAL_EXCLUDED)),
            CeremonyErrorKind.INVALID_CREDENTIAL_STATE,
            "A passkey is already registered for this account",
        ),
        (
            RuntimeError("usb glitch at 0x7f"),
            CeremonyErrorKind.TRANSIENT_FAILURE,
            "Failed to register passkey. Please try again.",
        ),
    ],
)
def test_ceremony_failures_are_classified(service, platform, store, error, kind, message):
    platform.create_error = error

    result = service.register("a@x.com", "u1")

    assert result.success is False
    assert result.reason is kind
    assert result.error == message
    assert len(store) == 0


def test_failed_registration_keeps_previous_record(service, platform):
    service.register("a@x.com", "u1")
    platform.create_error = PlatformError("NotAllowedError")

    result = service.register("a@x.com", "u1")

    assert result.success is False
    assert service.index.get("u1").credential_id == "cred-1"


def test_missing_credential_from_platform_is_a_failure(service, platform, store):
    platform.create_result = None

    result = service.register("a@x.com", "u1")

    assert result.success is False
    assert result.reason is CeremonyErrorKind.TRANSIENT_FAILURE
    assert len(store) == 0


def test_result_serialisation(service):
    assert service.register("a@x.com", "u1").to_dict() == {
        "success": True,
        "credentialId": "cred-1",
    }
