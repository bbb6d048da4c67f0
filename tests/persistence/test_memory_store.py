# tests/persistence/test_memory_store.py
import pytest

from atlas_taskflow.core.exceptions import NotFoundError
from atlas_taskflow.core.task.task import TaskIdentity
from atlas_taskflow.persistence.artifact_store import ArtifactMeta, ArtifactStore, InMemoryArtifactStore


IDENTITY = TaskIdentity.of("train", {"lr": 0.1})


def test_memory_store_round_trip_is_isolated_from_caller_mutations(memory_store):
    value = {"weights": [1, 2]}
    memory_store.save(IDENTITY, value)
    value["weights"].append(3)

    loaded = memory_store.load(IDENTITY)
    loaded["weights"].append(4)

    assert memory_store.load(IDENTITY) == {"weights": [1, 2]}
    assert isinstance(memory_store, ArtifactStore)


def test_memory_store_meta_and_invalidate(memory_store):
    meta = memory_store.save(IDENTITY, 1, upstream={"prepare-abc": "r1"})

    assert memory_store.describe(IDENTITY) is meta
    assert meta.format == "memory"
    assert meta.identity == IDENTITY
    assert memory_store.keys() == [IDENTITY]
    assert memory_store.invalidate(IDENTITY) is True
    assert memory_store.invalidate(IDENTITY) is False
    with pytest.raises(NotFoundError):
        memory_store.load(IDENTITY)


def test_artifact_meta_round_trip():
    meta = ArtifactMeta.create(IDENTITY, upstream={"prepare-abc": "r1"}, checksum="f" * 64)

    assert ArtifactMeta.from_dict(meta.to_dict()) == meta
    assert meta.created_at.endswith("+00:00")


def test_memory_store_is_empty_by_default():
    assert len(InMemoryArtifactStore()) == 0
