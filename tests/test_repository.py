"""Tests for the in-memory resource repository."""

from resourcestore.models import StoredObject
from resourcestore.repository import (
    InMemoryResourceRepository,
    MutableResourceRepository,
    ResourceRepository,
)

from tests.conftest import HELLO_SHA1

OTHER_SHA1 = "7c211433f02071597741e6ff5a8ea34789abbf43"


def make(content_hash=HELLO_SHA1, collection="persistent"):
    return StoredObject(content_hash=content_hash, size_bytes=5, collection_name=collection)


def test_satisfies_protocols():
    repository = InMemoryResourceRepository()
    assert isinstance(repository, ResourceRepository)
    assert isinstance(repository, MutableResourceRepository)


def test_find_similar_includes_self():
    repository = InMemoryResourceRepository()
    a, b, c = make(), make(), make(OTHER_SHA1)
    for obj in (a, b, c):
        repository.add(obj)

    similar = repository.find_similar_resources(a)

    assert {r.resource_id for r in similar} == {a.resource_id, b.resource_id}


def test_find_by_collection():
    repository = InMemoryResourceRepository()
    a = make(collection="persistent")
    repository.add(a)
    repository.add(make(collection="static"))

    assert repository.find_by_collection("persistent") == [a]
    assert repository.find_by_collection("missing") == []


def test_remove():
    repository = InMemoryResourceRepository()
    a = make()
    repository.add(a)

    assert repository.remove(a) is True
    assert repository.remove(a) is False
    assert a not in repository
    assert len(repository) == 0
