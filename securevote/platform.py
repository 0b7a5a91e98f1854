"""Access to the authenticator that runs passkey ceremonies on this machine."""
from __future__ import annotations

import getpass
import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Protocol, Union

from fido2.client import DefaultClientDataCollector, Fido2Client, UserInteraction
from fido2.ctap2 import Ctap2
from fido2.hid import CAPABILITY, CtapHidDevice
from fido2.utils import websafe_decode, websafe_encode
from fido2.webauthn import (
    PublicKeyCredentialCreationOptions,
    PublicKeyCredentialRequestOptions,
)

if sys.platform == "win32":
    from fido2.client.windows import WindowsClient
else:  # pragma: no cover - Windows Hello only exists on Windows.
    WindowsClient = None

__all__ = [
    "Fido2Platform",
    "Platform",
    "PlatformAssertion",
    "PlatformCredential",
    "PlatformError",
]

LOGGER = logging.getLogger(__name__)


def _windows_hello_available() -> bool:
    return WindowsClient is not None and WindowsClient.is_available()


class PlatformError(Exception):
    """A classified failure reported by the authenticator platform.

    ``name`` carries the WebAuthn DOMException name (``NotAllowedError``,
    ``InvalidStateError``, ``NotSupportedError`` ...).
    """

    def __init__(self, name: str, message: str = "") -> None:
        super().__init__(message or name)
        self.name = name


@dataclass(frozen=True)
class PlatformCredential:
    """Handle for a credential created by the authenticator."""

    id: str
    raw_id: bytes
    response: Any = None


@dataclass(frozen=True)
class PlatformAssertion:
    """Opaque assertion returned by the authenticator, unverified."""

    credential_id: str
    response: Any = None


class Platform(Protocol):
    def has_public_key_credentials(self) -> bool:
        ...

    def is_user_verifying_platform_authenticator_available(self) -> bool:
        ...

    def create(self, options: PublicKeyCredentialCreationOptions) -> PlatformCredential:
        ...

    def get(self, options: PublicKeyCredentialRequestOptions) -> PlatformAssertion:
        ...


def _raw_credential_id(response: Any) -> bytes:
    """Pull the raw credential id out of any python-fido2 response shape."""

    for attribute in ("raw_id", "credential_id", "id"):
        value = getattr(response, attribute, None)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, str) and value:
            return websafe_decode(value)

    attestation_object = getattr(getattr(response, "response", response), "attestation_object", None)
    credential_data = getattr(getattr(attestation_object, "auth_data", None), "credential_data", None)
    if credential_data is not None:
        return bytes(credential_data.credential_id)

    raise PlatformError("UnknownError", "authenticator response carries no credential id")


class ConsoleInteraction(UserInteraction):
    """Prompt on the service console while an authenticator needs the user."""

    def prompt_up(self) -> None:
        LOGGER.info("Touch your authenticator to continue.")

    def request_pin(self, permissions, rp_id) -> Optional[str]:
        return getpass.getpass("Enter authenticator PIN: ")

    def request_uv(self, permissions, rp_id) -> bool:
        LOGGER.info("User verification required for %s.", rp_id)
        return True


class Fido2Platform:
    """:class:`Platform` backed by python-fido2.

    Windows Hello is used when present. A connected FIDO2 security key is
    only considered when ``allow_security_keys`` is set, since it is a
    roaming authenticator rather than a device bound one.
    """

    def __init__(
        self,
        origin: Union[str, Callable[[], str]],
        *,
        allow_security_keys: bool = False,
        user_interaction: Optional[UserInteraction] = None,
    ) -> None:
        self._origin = origin
        self.allow_security_keys = allow_security_keys
        self.user_interaction = user_interaction or ConsoleInteraction()

    @property
    def origin(self) -> str:
        if callable(self._origin):
            return self._origin()
        return self._origin

    @contextmanager
    def _security_key(self) -> Iterator[Optional[CtapHidDevice]]:
        """Yield the first CBOR capable key, closing every opened device on exit."""

        if not self.allow_security_keys:
            yield None
            return

        selected: Optional[CtapHidDevice] = None
        for device in CtapHidDevice.list_devices():
            if selected is None and device.capabilities & CAPABILITY.CBOR:
                selected = device
            else:
                device.close()

        try:
            yield selected
        finally:
            if selected is not None:
                selected.close()

    def has_public_key_credentials(self) -> bool:
        return _windows_hello_available() or self.allow_security_keys

    def is_user_verifying_platform_authenticator_available(self) -> bool:
        if _windows_hello_available():
            return True

        with self._security_key() as device:
            if device is None:
                return False
            options = Ctap2(device).info.options
        return bool(options.get("uv") or options.get("clientPin"))

    @contextmanager
    def _client(self) -> Iterator[Any]:
        collector = DefaultClientDataCollector(self.origin)
        if _windows_hello_available():
            yield WindowsClient(collector)
            return

        with self._security_key() as device:
            if device is None:
                raise PlatformError("NotSupportedError", "no authenticator is connected")
            yield Fido2Client(device, collector, user_interaction=self.user_interaction)

    def create(self, options: PublicKeyCredentialCreationOptions) -> PlatformCredential:
        with self._client() as client:
            response = client.make_credential(options)
        raw_id = _raw_credential_id(response)
        return PlatformCredential(id=websafe_encode(raw_id), raw_id=raw_id, response=response)

    def get(self, options: PublicKeyCredentialRequestOptions) -> PlatformAssertion:
        with self._client() as client:
            response = client.get_assertion(options).get_response(0)
        return PlatformAssertion(
            credential_id=websafe_encode(_raw_credential_id(response)),
            response=response,
        )
