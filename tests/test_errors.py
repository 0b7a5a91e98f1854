import pytest
from fido2.client import ClientError
from fido2.ctap import CtapError

from securevote.errors import CeremonyErrorKind, classify_ceremony_error
from securevote.platform import PlatformError


@pytest.mark.parametrize(
    "name, expected",
    [
        ("NotSupportedError", CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT),
        ("NotAllowedError", CeremonyErrorKind.CANCELLED_OR_DENIED),
        ("AbortError", CeremonyErrorKind.CANCELLED_OR_DENIED),
        ("InvalidStateError", CeremonyErrorKind.INVALID_CREDENTIAL_STATE),
        ("UnknownError", CeremonyErrorKind.TRANSIENT_FAILURE),
    ],
)
def test_platform_error_names(name, expected):
    assert classify_ceremony_error(PlatformError(name)) is expected


@pytest.mark.parametrize(
    "code, expected",
    [
        (CtapError.ERR.KEEPALIVE_CANCEL, CeremonyErrorKind.CANCELLED_OR_DENIED),
        (CtapError.ERR.OPERATION_DENIED, CeremonyErrorKind.CANCELLED_OR_DENIED),
        (CtapError.ERR.CREDENTIAL_EXCLUDED, CeremonyErrorKind.INVALID_CREDENTIAL_STATE),
        (CtapError.ERR.NO_CREDENTIALS, CeremonyErrorKind.INVALID_CREDENTIAL_STATE),
        (CtapError.ERR.UNSUPPORTED_ALGORITHM, CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT),
        (CtapError.ERR.INVALID_CBOR, CeremonyErrorKind.TRANSIENT_FAILURE),
    ],
)
def test_ctap_error_wrapped_in_client_error(code, expected):
    error = ClientError(ClientError.ERR.OTHER_ERROR, CtapError(code))
    assert classify_ceremony_error(error) is expected


def test_cancel_reported_as_timeout_is_still_a_cancellation():
    error = ClientError(ClientError.ERR.TIMEOUT, CtapError(CtapError.ERR.KEEPALIVE_CANCEL))
    assert classify_ceremony_error(error) is CeremonyErrorKind.CANCELLED_OR_DENIED


def test_plain_timeout_is_transient():
    assert (
        classify_ceremony_error(ClientError(ClientError.ERR.TIMEOUT))
        is CeremonyErrorKind.TRANSIENT_FAILURE
    )


def test_client_error_code_used_without_more_specific_cause():
    assert (
        classify_ceremony_error(ClientError(ClientError.ERR.CONFIGURATION_UNSUPPORTED))
        is CeremonyErrorKind.UNSUPPORTED_ENVIRONMENT
    )
    assert (
        classify_ceremony_error(ClientError(ClientError.ERR.DEVICE_INELIGIBLE))
        is CeremonyErrorKind.INVALID_CREDENTIAL_STATE
    )


def test_windows_hello_error_name_in_os_error():
    error = ClientError(ClientError.ERR.OTHER_ERROR, OSError("NotAllowedError"))
    assert classify_ceremony_error(error) is CeremonyErrorKind.CANCELLED_OR_DENIED


def test_chained_exception_is_followed():
    try:
        try:
            raise PlatformError("InvalidStateError")
        except PlatformError as inner:
            raise RuntimeError("wrapper") from inner
    except RuntimeError as outer:
        assert classify_ceremony_error(outer) is CeremonyErrorKind.INVALID_CREDENTIAL_STATE


def test_unexpected_exception_is_transient():
    assert classify_ceremony_error(ValueError("boom")) is CeremonyErrorKind.TRANSIENT_FAILURE
