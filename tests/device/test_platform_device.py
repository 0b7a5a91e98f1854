"""Ceremonies against a real authenticator.

Run with ``pytest --run-device-tests`` while Windows Hello is set up or a
FIDO2 security key with a PIN or built-in user verification is plugged in.
"""
import pytest

from securevote.passkeys import PasskeyService
from securevote.platform import Fido2Platform
from securevote.storage import MemoryCredentialStore


@pytest.fixture
def device_service():
    adapter = Fido2Platform("https://localhost", allow_security_keys=True)
    if not adapter.is_user_verifying_platform_authenticator_available():
        pytest.skip("no user verifying authenticator connected")
    return PasskeyService(adapter, MemoryCredentialStore(), embedded=lambda: False)


def test_register_then_authenticate(device_service):
    registration = device_service.register("device-test@securevote.local", "device-test")
    assert registration.success, registration.error
    assert device_service.has_passkey("device-test")

    assertion = device_service.authenticate("device-test@securevote.local", "device-test")
    assert assertion.success, assertion.error
    assert assertion.credential.credential_id == registration.credential_id
