"""Correlation store: origin message <-> destination message.

The canonical table is keyed by origin id and is the only thing persisted;
the destination index is rebuilt from it on load. Both indexes are swapped
together as one snapshot so lookups in either direction always agree.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from core.models import CorrelationRecord, Credential
from core.observability import ErrorKind, LoggingObserver
from core.persistence import StoreLoadError, atomic_write_json, read_json_mapping
from core.ports import BridgeObserver

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    by_origin: Mapping[str, CorrelationRecord]
    by_destination: Mapping[str, CorrelationRecord]


def _record_to_json(record: CorrelationRecord) -> dict[str, Any]:
    credential = record.credential
    return {
        "origin_id": record.origin_id,
        "destination_id": record.destination_id,
        "webhook_id": credential.id if credential else None,
        "webhook_token": credential.token if credential else None,
        "origin_room": record.origin_room,
    }


def _record_from_json(value: Mapping[str, Any]) -> CorrelationRecord:
    credential = None
    if value.get("webhook_id"):
        credential = Credential(id=str(value["webhook_id"]), token=str(value["webhook_token"]))
    return CorrelationRecord(
        origin_id=str(value["origin_id"]),
        destination_id=str(value["destination_id"]),
        credential=credential,
        origin_room=str(value.get("origin_room", "")),
    )


class CorrelationStore:
    """Bidirectional, persisted message correlation."""

    def __init__(self, path: Union[str, Path], observer: Optional[BridgeObserver] = None) -> None:
        self._path = Path(path)
        self._observer = observer or LoggingObserver()
        self._lock = threading.Lock()
        self._snapshot = self._load()

    def _load(self) -> _Snapshot:
        raw = read_json_mapping(self._path)
        by_origin: dict[str, CorrelationRecord] = {}
        for key, value in raw.items():
            try:
                record = _record_from_json(value)
            except (KeyError, TypeError, AttributeError) as exc:
                raise StoreLoadError(f"Invalid correlation entry {key!r} in {self._path}") from exc
            by_origin[record.origin_id] = record
        by_destination = {record.destination_id: record for record in by_origin.values()}
        LOGGER.info("Loaded %s message correlations from %s", len(by_origin), self._path)
        return _Snapshot(by_origin=by_origin, by_destination=by_destination)

    def _persist(self, by_origin: Mapping[str, CorrelationRecord]) -> None:
        payload = {origin_id: _record_to_json(record) for origin_id, record in by_origin.items()}
        try:
            atomic_write_json(self._path, payload)
        except OSError as exc:
            self._observer.report(
                ErrorKind.PERSISTENCE_FAILURE,
                "Failed to persist correlations",
                path=str(self._path),
                error=exc,
            )

    def record(
        self,
        origin_id: str,
        destination_id: str,
        credential: Optional[Credential],
        origin_room: str,
    ) -> CorrelationRecord:
        """Insert a record; an existing id on either side is overwritten."""

        record = CorrelationRecord(
            origin_id=origin_id,
            destination_id=destination_id,
            credential=credential,
            origin_room=origin_room,
        )
        with self._lock:
            by_origin = dict(self._snapshot.by_origin)
            by_destination = dict(self._snapshot.by_destination)

            # Drop the other half of any record we are about to replace.
            stale = by_origin.get(origin_id)
            if stale is not None and by_destination.get(stale.destination_id) is stale:
                del by_destination[stale.destination_id]
            stale = by_destination.get(destination_id)
            if stale is not None and by_origin.get(stale.origin_id) is stale:
                del by_origin[stale.origin_id]

            by_origin[origin_id] = record
            by_destination[destination_id] = record
            self._snapshot = _Snapshot(by_origin=by_origin, by_destination=by_destination)
            self._persist(by_origin)
        return record

    def by_origin(self, origin_id: str) -> Optional[CorrelationRecord]:
        return self._snapshot.by_origin.get(origin_id)

    def by_destination(self, destination_id: str) -> Optional[CorrelationRecord]:
        return self._snapshot.by_destination.get(destination_id)

    def __len__(self) -> int:
        return len(self._snapshot.by_origin)
