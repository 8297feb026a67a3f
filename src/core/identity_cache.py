"""Identity cache: one reusable Discord webhook per (channel, sender).

Reads are lock-free: the mapping is replaced wholesale (copy-on-write) under
the writer lock, so a reader sees either the old or the new snapshot and
never a half-built entry. Webhook creation is a network call and happens
outside the lock. Two concurrent resolves of the same uncached pair can
therefore both create a webhook; the first one stored wins and the other is
left orphaned on Discord. A crash between creation and persistence orphans
the webhook the same way. Both are accepted risks.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Mapping, Optional, Union

from core.identity_keys import build_identity_key, split_identity_key
from core.models import Credential
from core.observability import ErrorKind, LoggingObserver
from core.persistence import StoreLoadError, atomic_write_json, read_json_mapping
from core.ports import BridgeObserver, IdentityProvisioner

LOGGER = logging.getLogger(__name__)


class IdentityCache:
    """Lazily provisioned, persisted impersonation identities."""

    def __init__(
        self,
        path: Union[str, Path],
        provisioner: IdentityProvisioner,
        observer: Optional[BridgeObserver] = None,
    ) -> None:
        self._path = Path(path)
        self._provisioner = provisioner
        self._observer = observer or LoggingObserver()
        self._lock = threading.Lock()
        self._entries: Mapping[str, Credential] = self._load()

    def _load(self) -> dict[str, Credential]:
        raw = read_json_mapping(self._path)
        entries: dict[str, Credential] = {}
        for key, value in raw.items():
            try:
                split_identity_key(key)
                entries[key] = Credential(id=str(value["id"]), token=str(value["token"]))
            except (KeyError, TypeError, ValueError) as exc:
                raise StoreLoadError(f"Invalid identity entry {key!r} in {self._path}") from exc
        LOGGER.info("Loaded %s impersonation identities from %s", len(entries), self._path)
        return entries

    def _persist(self, entries: Mapping[str, Credential]) -> None:
        payload = {key: {"id": cred.id, "token": cred.token} for key, cred in entries.items()}
        try:
            atomic_write_json(self._path, payload)
        except OSError as exc:
            # The in-memory cache stays authoritative for this process.
            self._observer.report(
                ErrorKind.PERSISTENCE_FAILURE,
                "Failed to persist identities",
                path=str(self._path),
                error=exc,
            )

    def get(self, channel_id: str, sender_id: str) -> Optional[Credential]:
        return self._entries.get(build_identity_key(channel_id, sender_id))

    async def resolve(self, channel_id: str, sender_id: str) -> Credential:
        """Return the credential for the pair, creating it on first use."""

        key = build_identity_key(channel_id, sender_id)
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        created = await self._provisioner.create_identity(channel_id, sender_id)

        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                LOGGER.warning(
                    "Identity for %s created twice; keeping %s, webhook %s is orphaned",
                    key,
                    existing.id,
                    created.id,
                )
                return existing
            entries = dict(self._entries)
            entries[key] = created
            self._entries = entries
            self._persist(entries)

        LOGGER.info("Created impersonation identity %s for %s", created.id, key)
        return created

    def is_owned_identity(self, account_id: str) -> bool:
        """True when ``account_id`` is one of the webhooks this cache created."""

        return any(cred.id == account_id for cred in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
