"""Password plus passkey login sequence.

The password step always runs first. The passkey step is only attempted for
a user whose password was accepted, and a passkey ceremony that fails never
results in a successful login. What happens when no ceremony can be run at
all (embedded page, no authenticator, no passkey registered) is decided by
:class:`SecondFactorPolicy`.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from .passkeys import PasskeyService

__all__ = [
    "ADMIN_DESTINATION",
    "VOTER_DESTINATION",
    "destination_for_role",
    "LoginFlow",
    "LoginOutcome",
    "LoginStep",
    "PasswordVerifier",
    "RoleDirectory",
    "SecondFactorPolicy",
    "SecondFactorStatus",
    "SignInError",
    "SignedInUser",
]

LOGGER = logging.getLogger(__name__)

ADMIN_DESTINATION = "/admin-dashboard"
VOTER_DESTINATION = "/voting-dashboard"


class SecondFactorPolicy(str, enum.Enum):
    REQUIRED = "required"
    PREFERRED = "preferred"


class LoginStep(str, enum.Enum):
    PASSWORD = "password"
    SECOND_FACTOR = "second_factor"
    COMPLETE = "complete"


class SecondFactorStatus(str, enum.Enum):
    NOT_ATTEMPTED = "not_attempted"
    VERIFIED = "verified"
    FAILED = "failed"
    SKIPPED_EMBEDDED = "skipped_embedded"
    SKIPPED_UNSUPPORTED = "skipped_unsupported"
    SKIPPED_NOT_REGISTERED = "skipped_not_registered"


_SKIPPED_MESSAGES = {
    SecondFactorStatus.SKIPPED_EMBEDDED: (
        "Passkey authentication requires opening the app in a new browser tab"
    ),
    SecondFactorStatus.SKIPPED_UNSUPPORTED: (
        "Passkey authentication is not available on this device"
    ),
    SecondFactorStatus.SKIPPED_NOT_REGISTERED: (
        "A passkey is required for this account. Set one up in settings first."
    ),
}


class SignInError(Exception):
    """The identity provider rejected the credentials or could not be reached."""


@dataclass(frozen=True)
class SignedInUser:
    id: str
    email: str
    access_token: Optional[str] = None


class PasswordVerifier(Protocol):
    def sign_in(self, email: str, password: str) -> SignedInUser:
        ...


class RoleDirectory(Protocol):
    def role_for(self, user: SignedInUser) -> Optional[str]:
        ...


@dataclass(frozen=True)
class LoginOutcome:
    success: bool
    step: LoginStep
    second_factor: SecondFactorStatus = SecondFactorStatus.NOT_ATTEMPTED
    user: Optional[SignedInUser] = None
    role: Optional[str] = None
    destination: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "step": self.step.value,
            "secondFactor": self.second_factor.value,
        }
        if self.user is not None:
            payload["userId"] = self.user.id
            payload["email"] = self.user.email
        if self.role is not None:
            payload["role"] = self.role
        if self.destination is not None:
            payload["destination"] = self.destination
        if self.error is not None:
            payload["error"] = self.error
        return payload


def destination_for_role(role: Optional[str]) -> str:
    if role == "admin":
        return ADMIN_DESTINATION
    return VOTER_DESTINATION


class LoginFlow:
    def __init__(
        self,
        verifier: PasswordVerifier,
        passkeys: PasskeyService,
        policy: SecondFactorPolicy = SecondFactorPolicy.PREFERRED,
        roles: Optional[RoleDirectory] = None,
    ) -> None:
        self.verifier = verifier
        self.passkeys = passkeys
        self.policy = SecondFactorPolicy(policy)
        self.roles = roles

    def _second_factor(self, user: SignedInUser) -> LoginOutcome:
        status = self.passkeys.support_status()
        if status.embedded:
            skipped = SecondFactorStatus.SKIPPED_EMBEDDED
        elif not status.supported:
            skipped = SecondFactorStatus.SKIPPED_UNSUPPORTED
        elif not self.passkeys.has_passkey(user.id):
            skipped = SecondFactorStatus.SKIPPED_NOT_REGISTERED
        else:
            skipped = None

        if skipped is not None:
            if self.policy is SecondFactorPolicy.REQUIRED:
                return LoginOutcome(
                    success=False,
                    step=LoginStep.SECOND_FACTOR,
                    second_factor=skipped,
                    user=user,
                    error=_SKIPPED_MESSAGES[skipped],
                )
            LOGGER.info("Continuing login for %s without passkey (%s).", user.id, skipped.value)
            return LoginOutcome(
                success=True, step=LoginStep.SECOND_FACTOR, second_factor=skipped, user=user
            )

        result = self.passkeys.authenticate(user.email, user.id)
        if not result.success:
            return LoginOutcome(
                success=False,
                step=LoginStep.SECOND_FACTOR,
                second_factor=SecondFactorStatus.FAILED,
                user=user,
                error=result.error or "Biometric authentication failed",
            )

        return LoginOutcome(
            success=True,
            step=LoginStep.SECOND_FACTOR,
            second_factor=SecondFactorStatus.VERIFIED,
            user=user,
        )

    def _resolve_role(self, user: SignedInUser) -> str:
        if self.roles is None:
            return "voter"
        try:
            return self.roles.role_for(user) or "voter"
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Error fetching role for %s: %s", user.id, exc)
            return "voter"

    def login(self, email: str, password: str) -> LoginOutcome:
        try:
            user = self.verifier.sign_in(email, password)
        except SignInError as exc:
            return LoginOutcome(success=False, step=LoginStep.PASSWORD, error=str(exc))
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Unexpected error during password sign in.")
            return LoginOutcome(
                success=False,
                step=LoginStep.PASSWORD,
                error="An unexpected error occurred. Please try again.",
            )

        second_factor = self._second_factor(user)
        if not second_factor.success:
            return second_factor

        role = self._resolve_role(user)
        return LoginOutcome(
            success=True,
            step=LoginStep.COMPLETE,
            second_factor=second_factor.second_factor,
            user=user,
            role=role,
            destination=destination_for_role(role),
        )
