"""Classification of ceremony failures into user facing outcomes."""
from __future__ import annotations

import enum
from typing import Dict, Iterator, Optional

from fido2.client import ClientError
from fido2.ctap import CtapError

from .platform import PlatformError

__all__ = [
    "AUTHENTICATION_MESSAGES",
    "REGISTRATION_MESSAGES",
    "UNSUPPORTED_ENVIRONMENT_MESSAGE",
    "CeremonyErrorKind",
    "classify_ceremony_error",
]


class CeremonyErrorKind(str, enum.Enum):
    UNSUPPORTED_ENVIRONMENT = "unsupported_environment"
    CANCELLED_OR_DENIED = "cancelled_or_denied"
    INVALID_CREDENTIAL_STATE = "invalid_credential_state"
    CREDENTIAL_NOT_FOUND = "credential_not_found"
    TRANSIENT_FAILURE = "transient_failure"


# WebAuthn DOMException names, as reported by browsers and by Windows Hello.
_DOM_ERROR_KINDS: Dict[str, CeremonyErrorKind] = {
    "NotSupportedError": CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT,
    "SecurityError": CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT,
    "NotAllowedError": CeremonyErrorKind.CANCELLED_OR_DENIED,
    "AbortError": CeremonyErrorKind.CANCELLED_OR_DENIED,
    "InvalidStateError": CeremonyErrorKind.INVALID_CREDENTIAL_STATE,
}

_CTAP_ERROR_KINDS: Dict[int, CeremonyErrorKind] = {
    CtapError.ERR.KEEPALIVE_CANCEL: CeremonyErrorKind.CANCELLED_OR_DENIED,
    CtapError.ERR.OPERATION_DENIED: CeremonyErrorKind.CANCELLED_OR_DENIED,
    CtapError.ERR.NOT_ALLOWED: CeremonyErrorKind.CANCELLED_OR_DENIED,
    CtapError.ERR.PIN_INVALID: CeremonyErrorKind.CANCELLED_OR_DENIED,
    CtapError.ERR.PIN_BLOCKED: CeremonyErrorKind.CANCELLED_OR_DENIED,
    CtapError.ERR.UV_BLOCKED: CeremonyErrorKind.CANCELLED_OR_DENIED,
    CtapError.ERR.CREDENTIAL_EXCLUDED: CeremonyErrorKind.INVALID_CREDENTIAL_STATE,
    CtapError.ERR.NO_CREDENTIALS: CeremonyErrorKind.INVALID_CREDENTIAL_STATE,
    CtapError.ERR.UNSUPPORTED_ALGORITHM: CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT,
    CtapError.ERR.UNSUPPORTED_OPTION: CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT,
}

_CLIENT_ERROR_KINDS: Dict[int, CeremonyErrorKind] = {
    ClientError.ERR.CONFIGURATION_UNSUPPORTED: CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT,
    ClientError.ERR.DEVICE_INELIGIBLE: CeremonyErrorKind.INVALID_CREDENTIAL_STATE,
}

REGISTRATION_MESSAGES: Dict[CeremonyErrorKind, str] = {
    CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT: "Passkey authentication is not supported on this device",
    CeremonyErrorKind.CANCELLED_OR_DENIED: "Passkey registration was cancelled or denied",
    CeremonyErrorKind.INVALID_CREDENTIAL_STATE: "A passkey is already registered for this account",
    CeremonyErrorKind.TRANSIENT_FAILURE: "Failed to register passkey. Please try again.",
}

AUTHENTICATION_MESSAGES: Dict[CeremonyErrorKind, str] = {
    CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT: "Passkey authentication is not supported on this device",
    CeremonyErrorKind.CANCELLED_OR_DENIED: "Passkey authentication was cancelled or denied",
    CeremonyErrorKind.INVALID_CREDENTIAL_STATE: "No valid passkey found for this account",
    CeremonyErrorKind.CREDENTIAL_NOT_FOUND: (
        "No passkey found for this account. Please register a passkey first."
    ),
    CeremonyErrorKind.TRANSIENT_FAILURE: "Passkey authentication failed. Please try again.",
}

UNSUPPORTED_ENVIRONMENT_MESSAGE = "Passkey authentication is not supported in this environment"


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        cause = getattr(current, "cause", None)
        if not isinstance(cause, BaseException):
            cause = current.__cause__ or current.__context__
        current = cause


def _dom_error_kind(exc: BaseException) -> Optional[CeremonyErrorKind]:
    name = getattr(exc, "name", None)
    if isinstance(name, str) and name in _DOM_ERROR_KINDS:
        return _DOM_ERROR_KINDS[name]

    # Windows Hello surfaces the DOMException name as the OSError message.
    if isinstance(exc, OSError):
        message = str(exc)
        for dom_name, kind in _DOM_ERROR_KINDS.items():
            if dom_name in message:
                return kind

    return None


def classify_ceremony_error(exc: BaseException) -> CeremonyErrorKind:
    """Reduce a platform exception to a :class:`CeremonyErrorKind`.

    The most specific signal in the exception chain wins: a CTAP status or a
    DOMException name beats the coarse python-fido2 client error code.
    """

    fallback = CeremonyErrorKind.TRANSIENT_FAILURE

    for link in _exception_chain(exc):
        if isinstance(link, CtapError):
            kind = _CTAP_ERROR_KINDS.get(link.code)
            if kind is not None:
                return kind
            continue

        if isinstance(link, (PlatformError, OSError)):
            kind = _dom_error_kind(link)
            if kind is not None:
                return kind
            continue

        if isinstance(link, ClientError):
            kind = _CLIENT_ERROR_KINDS.get(link.code)
            if kind is not None and fallback is CeremonyErrorKind.TRANSIENT_FAILURE:
                fallback = kind

    return fallback
