"""Route registrations for the SecureVote passkey service."""

# Import submodules to register routes via decorators.
from . import general  # noqa: F401
from . import passkey  # noqa: F401

__all__ = ["general", "passkey"]
