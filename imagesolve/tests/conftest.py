"""Shared fixtures for the test suite."""

import pytest

from imagesolve.core import config
from imagesolve.core.cache import MetadataCache
from imagesolve.core.models import Repository
from imagesolve.core.solver import new_context

from .fixtures import DISTRO_PACKAGES, make_repository


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the default cache at tmp_path and forget cached settings."""
    monkeypatch.setenv('IMAGESOLVE_CACHE_DIR', str(tmp_path / "default-cache"))
    config.reset_config()
    yield
    config.reset_config()


@pytest.fixture
def distro_repo(tmp_path) -> Repository:
    return make_repository(tmp_path / "repos" / "baseos", DISTRO_PACKAGES)


@pytest.fixture
def cache(tmp_path) -> MetadataCache:
    return MetadataCache(tmp_path / "cache")


@pytest.fixture
def base(cache):
    return new_context(cache)


@pytest.fixture
def solver(base, distro_repo):
    return base.derive("platform:el9", "9", "x86_64", "centos-9",
                       repositories=[distro_repo])
