"""Local passkey record storage.

The index only remembers *that* a user set up a passkey on this machine. It
is advisory: nothing here is used to verify an assertion and no key material
is ever written.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol

from fido2.utils import websafe_encode

__all__ = [
    "CredentialRecord",
    "CredentialStore",
    "FileCredentialStore",
    "LocalCredentialIndex",
    "MemoryCredentialStore",
]

LOGGER = logging.getLogger(__name__)

_KEY_PREFIX = "passkey_"


class CredentialStore(Protocol):
    """String keyed storage scoped to this service."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryCredentialStore:
    """In-process store, used by tests and ephemeral deployments."""

    def __init__(self, items: Optional[Mapping[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self):
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


class FileCredentialStore:
    """Persist each key as its own JSON file inside ``directory``."""

    def __init__(self, directory: str) -> None:
        self.directory = directory
        self._lock = threading.Lock()

    def _path_for(self, key: str) -> str:
        # Keys carry user identifiers; encode them so they are always safe file names.
        filename = f"{websafe_encode(key.encode('utf-8'))}.json"
        return os.path.join(self.directory, filename)

    def get_item(self, key: str) -> Optional[str]:
        try:
            with open(self._path_for(key), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_path = path + ".tmp"
        with self._lock:
            os.makedirs(self.directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_path, path)

    def remove_item(self, key: str) -> None:
        with self._lock:
            try:
                os.remove(self._path_for(key))
            except FileNotFoundError:
                pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError("createdAt must be an ISO 8601 string")


@dataclass(frozen=True)
class CredentialRecord:
    """A user's passkey as remembered by this machine."""

    credential_id: str
    user_email: str
    user_id: str
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.credential_id,
            "userEmail": self.user_email,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat().replace("+00:00", "Z"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CredentialRecord":
        credential_id = data.get("id")
        user_id = data.get("userId")
        if not isinstance(credential_id, str) or not credential_id:
            raise ValueError("stored passkey record has no credential id")
        if not isinstance(user_id, str) or not user_id:
            raise ValueError("stored passkey record has no user id")
        return cls(
            credential_id=credential_id,
            user_email=str(data.get("userEmail") or ""),
            user_id=user_id,
            created_at=_parse_timestamp(data.get("createdAt")),
        )


class LocalCredentialIndex:
    """Map of user id to :class:`CredentialRecord`, one record per user."""

    def __init__(self, store: CredentialStore) -> None:
        self.store = store

    @staticmethod
    def key_for(user_id: str) -> str:
        return f"{_KEY_PREFIX}{user_id}"

    def get(self, user_id: str) -> Optional[CredentialRecord]:
        raw = self.store.get_item(self.key_for(user_id))
        if raw is None:
            return None

        try:
            return CredentialRecord.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as exc:
            LOGGER.warning("Ignoring unreadable passkey record for user %s: %s", user_id, exc)
            return None

    def has(self, user_id: str) -> bool:
        return self.get(user_id) is not None

    def put(self, record: CredentialRecord) -> None:
        """Store ``record``, replacing whatever was kept for the same user."""

        self.store.set_item(self.key_for(record.user_id), json.dumps(record.to_dict()))

    def remove(self, user_id: str) -> None:
        self.store.remove_item(self.key_for(user_id))
