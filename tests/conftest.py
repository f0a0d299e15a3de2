"""Shared fixtures: a memory repository session and an adapter rooted in it."""

import pytest

from jcrfs import Filesystem, JcrAdapter, MemoryRepository, SimpleCredentials

ROOT = "/flysystem_tests"


@pytest.fixture
def repository():
    return MemoryRepository({})


@pytest.fixture
def session(repository):
    return repository.login(SimpleCredentials("test", "test"))


@pytest.fixture
def adapter(session):
    return JcrAdapter(session, ROOT)


@pytest.fixture
def fs(adapter):
    return Filesystem(adapter)
