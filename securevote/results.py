"""Outcomes returned by the passkey ceremonies."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import CeremonyErrorKind
from .platform import PlatformAssertion

__all__ = ["AuthResult", "RegistrationResult"]


@dataclass(frozen=True)
class RegistrationResult:
    success: bool
    credential_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[CeremonyErrorKind] = None

    @classmethod
    def ok(cls, credential_id: str) -> "RegistrationResult":
        return cls(success=True, credential_id=credential_id)

    @classmethod
    def failed(cls, reason: CeremonyErrorKind, error: str) -> "RegistrationResult":
        return cls(success=False, error=error, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.credential_id is not None:
            payload["credentialId"] = self.credential_id
        if self.error is not None:
            payload["error"] = self.error
        if self.reason is not None:
            payload["reason"] = self.reason.value
        return payload


@dataclass(frozen=True)
class AuthResult:
    success: bool
    credential: Optional[PlatformAssertion] = None
    error: Optional[str] = None
    reason: Optional[CeremonyErrorKind] = None

    @classmethod
    def ok(cls, credential: PlatformAssertion) -> "AuthResult":
        return cls(success=True, credential=credential)

    @classmethod
    def failed(cls, reason: CeremonyErrorKind, error: str) -> "AuthResult":
        return cls(success=False, error=error, reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.credential is not None:
            payload["credentialId"] = self.credential.credential_id
        if self.error is not None:
            payload["error"] = self.error
        if self.reason is not None:
            payload["reason"] = self.reason.value
        return payload
