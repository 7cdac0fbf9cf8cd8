"""Shared fixtures for dbaccess tests."""

import pytest

from fakes import FakeConnectionPool, make_config


@pytest.fixture
def config():
    return make_config(max_connections=5)


@pytest.fixture
def pool(config):
    return FakeConnectionPool(config)
