from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from core.identity_cache import IdentityCache
from core.models import Credential
from core.observability import ErrorKind
from core.persistence import StoreLoadError


class FakeProvisioner:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def create_identity(self, channel_id: str, sender_id: str) -> Credential:
        self.calls.append((channel_id, sender_id))
        n = len(self.calls)
        return Credential(id=f"W{n}", token=f"T{n}")


class SlowProvisioner(FakeProvisioner):
    async def create_identity(self, channel_id: str, sender_id: str) -> Credential:
        credential = await super().create_identity(channel_id, sender_id)
        await asyncio.sleep(0)
        return credential


class RecordingObserver:
    def __init__(self) -> None:
        self.reports: list[ErrorKind] = []

    def report(self, kind: ErrorKind, message: str, **fields) -> None:
        self.reports.append(kind)


def test_resolve_creates_once_and_reuses(tmp_path: Path) -> None:
    provisioner = FakeProvisioner()
    cache = IdentityCache(tmp_path / "webhooks.json", provisioner)

    first = asyncio.run(cache.resolve("C", "@alice:hs"))
    second = asyncio.run(cache.resolve("C", "@alice:hs"))

    assert first == Credential(id="W1", token="T1")
    assert second == first
    assert provisioner.calls == [("C", "@alice:hs")]


def test_pairs_are_independent(tmp_path: Path) -> None:
    cache = IdentityCache(tmp_path / "webhooks.json", FakeProvisioner())

    a = asyncio.run(cache.resolve("C", "@alice:hs"))
    b = asyncio.run(cache.resolve("C", "@bob:hs"))
    c = asyncio.run(cache.resolve("D", "@alice:hs"))

    assert len({a, b, c}) == 3
    assert len(cache) == 3


def test_concurrent_resolve_keeps_a_single_credential(tmp_path: Path) -> None:
    provisioner = SlowProvisioner()
    path = tmp_path / "webhooks.json"
    cache = IdentityCache(path, provisioner)

    async def _race() -> list[Credential]:
        return await asyncio.gather(*(cache.resolve("C", "@alice:hs") for _ in range(5)))

    results = asyncio.run(_race())

    # Duplicated creation is allowed, but everyone ends up with the stored one.
    assert len(set(results)) == 1
    assert len(cache) == 1
    persisted = json.loads(path.read_text(encoding="utf-8"))
    assert list(persisted) == ["C | @alice:hs"]
    assert persisted["C | @alice:hs"]["id"] == results[0].id


def test_round_trip_persistence(tmp_path: Path) -> None:
    path = tmp_path / "webhooks.json"
    cache = IdentityCache(path, FakeProvisioner())
    senders = [f"@user{i}:hs" for i in range(10)]
    created = {sender: asyncio.run(cache.resolve("C", sender)) for sender in senders}

    provisioner = FakeProvisioner()
    reloaded = IdentityCache(path, provisioner)

    for sender in senders:
        assert reloaded.get("C", sender) == created[sender]
        assert asyncio.run(reloaded.resolve("C", sender)) == created[sender]
    assert provisioner.calls == []


def test_is_owned_identity(tmp_path: Path) -> None:
    cache = IdentityCache(tmp_path / "webhooks.json", FakeProvisioner())
    credential = asyncio.run(cache.resolve("C", "@alice:hs"))

    assert cache.is_owned_identity(credential.id)
    assert not cache.is_owned_identity("someone-else")


def test_missing_file_is_an_empty_cache(tmp_path: Path) -> None:
    cache = IdentityCache(tmp_path / "nested" / "webhooks.json", FakeProvisioner())
    assert len(cache) == 0


def test_corrupt_file_is_fatal(tmp_path: Path) -> None:
    path = tmp_path / "webhooks.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreLoadError):
        IdentityCache(path, FakeProvisioner())


def test_persist_failure_keeps_memory_entry(tmp_path: Path) -> None:
    # A directory where the file should be makes every write fail.
    path = tmp_path / "webhooks.json"
    observer = RecordingObserver()
    cache = IdentityCache(path, FakeProvisioner(), observer)
    path.mkdir()

    credential = asyncio.run(cache.resolve("C", "@alice:hs"))

    assert cache.get("C", "@alice:hs") == credential
    assert observer.reports == [ErrorKind.PERSISTENCE_FAILURE]


def test_provisioning_failure_stores_nothing(tmp_path: Path) -> None:
    class FailingProvisioner:
        async def create_identity(self, channel_id: str, sender_id: str) -> Credential:
            raise RuntimeError("discord is down")

    path = tmp_path / "webhooks.json"
    cache = IdentityCache(path, FailingProvisioner())

    with pytest.raises(RuntimeError):
        asyncio.run(cache.resolve("C", "@alice:hs"))

    assert len(cache) == 0
    assert not path.exists()


def test_entry_with_malformed_key_is_fatal(tmp_path: Path) -> None:
    path = tmp_path / "webhooks.json"
    path.write_text(json.dumps({"@alice:hs": {"id": "W1", "token": "T1"}}), encoding="utf-8")

    with pytest.raises(StoreLoadError):
        IdentityCache(path, FakeProvisioner())
