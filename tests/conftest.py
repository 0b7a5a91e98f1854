from pathlib import Path
from typing import List, Optional

import pytest

from securevote.app import app
from securevote.passkeys import PasskeyService, install_passkey_service
from securevote.platform import PlatformAssertion, PlatformCredential
from securevote.storage import MemoryCredentialStore


def pytest_addoption(parser):
    parser.addoption(
        "--run-device-tests",
        action="store_true",
        help="Include the authenticator-in-the-loop tests under tests/device.",
    )


def pytest_ignore_collect(collection_path, config):
    """Skip tests that need a real authenticator unless explicitly requested."""

    if config.getoption("--run-device-tests"):
        return None

    try:
        path_obj = Path(str(collection_path))
    except TypeError:
        return None

    parts = path_obj.parts
    try:
        tests_index = parts.index("tests")
    except ValueError:
        return None

    if tests_index + 1 < len(parts) and parts[tests_index + 1] == "device":
        return True
    return None


class StubPlatform:
    """Scriptable stand-in for the authenticator platform."""

    def __init__(self) -> None:
        self.api_available = True
        self.authenticator_available = True
        self.availability_error: Optional[BaseException] = None
        self.create_result: Optional[PlatformCredential] = PlatformCredential(
            id="cred-1", raw_id=b"cred-1-raw"
        )
        self.create_error: Optional[BaseException] = None
        self.get_result: Optional[PlatformAssertion] = None
        self.get_error: Optional[BaseException] = None
        self.create_calls: List[object] = []
        self.get_calls: List[object] = []
        self.availability_queries = 0

    def has_public_key_credentials(self) -> bool:
        return self.api_available

    def is_user_verifying_platform_authenticator_available(self) -> bool:
        self.availability_queries += 1
        if self.availability_error is not None:
            raise self.availability_error
        return self.authenticator_available

    def create(self, options):
        self.create_calls.append(options)
        if self.create_error is not None:
            raise self.create_error
        return self.create_result

    def get(self, options):
        self.get_calls.append(options)
        if self.get_error is not None:
            raise self.get_error
        if self.get_result is not None:
            return self.get_result
        descriptor = options.allow_credentials[0]
        return PlatformAssertion(credential_id="assertion", response={"id": bytes(descriptor.id)})


@pytest.fixture
def platform():
    return StubPlatform()


@pytest.fixture
def store():
    return MemoryCredentialStore()


@pytest.fixture
def embedded_state():
    return {"embedded": False}


@pytest.fixture
def service(platform, store, embedded_state):
    return PasskeyService(platform, store, embedded=lambda: embedded_state["embedded"])


@pytest.fixture
def client(service):
    previous = dict(app.extensions)
    install_passkey_service(app, service)
    app.config.update(TESTING=True)

    with app.test_client() as test_client:
        yield test_client

    app.extensions.clear()
    app.extensions.update(previous)
