"""Detection of whether a passkey ceremony can run for the current caller."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict

from .config import is_embedded_request
from .platform import Platform

__all__ = ["SupportProbe", "SupportResult"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupportResult:
    embedded: bool
    api_available: bool
    platform_authenticator: bool

    @property
    def supported(self) -> bool:
        return not self.embedded and self.api_available and self.platform_authenticator

    def __bool__(self) -> bool:
        return self.supported

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supported": self.supported,
            "embedded": self.embedded,
            "apiAvailable": self.api_available,
            "platformAuthenticator": self.platform_authenticator,
        }


class SupportProbe:
    """Fail-closed capability check, never raises and has no side effects.

    Embedded callers are refused before the platform is queried.
    """

    def __init__(
        self,
        platform: Platform,
        embedded: Callable[[], bool] = is_embedded_request,
    ) -> None:
        self.platform = platform
        self._embedded = embedded

    def _is_embedded(self) -> bool:
        try:
            return bool(self._embedded())
        except Exception:  # pylint: disable=broad-except
            LOGGER.warning("Unable to determine browsing context; assuming embedded.", exc_info=True)
            return True

    def _api_available(self) -> bool:
        try:
            return bool(self.platform.has_public_key_credentials())
        except Exception:  # pylint: disable=broad-except
            LOGGER.warning("Public key credential capability check failed.", exc_info=True)
            return False

    def _platform_authenticator(self) -> bool:
        try:
            return bool(self.platform.is_user_verifying_platform_authenticator_available())
        except Exception:  # pylint: disable=broad-except
            LOGGER.warning("Error checking passkey support.", exc_info=True)
            return False

    def check_support(self) -> bool:
        if self._is_embedded():
            return False
        if not self._api_available():
            return False
        return self._platform_authenticator()

    def probe(self) -> SupportResult:
        """Report every capability flag, for status displays."""

        embedded = self._is_embedded()
        api_available = self._api_available()
        platform_authenticator = api_available and self._platform_authenticator()
        return SupportResult(
            embedded=embedded,
            api_available=api_available,
            platform_authenticator=platform_authenticator,
        )
