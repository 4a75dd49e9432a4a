"""Tests for configuration and cancellation"""

import time

import pytest

from imagesolve.core import config
from imagesolve.core.cancel import CancelToken, check
from imagesolve.core.errors import CancelledError, ConfigurationError


class TestConfig:
    """Tests for settings resolution."""

    def test_env_cache_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("IMAGESOLVE_CACHE_DIR", str(tmp_path / "c"))
        config.reset_config()
        assert config.get_cache_dir() == tmp_path / "c"

    def test_local_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("IMAGESOLVE_CACHE_DIR", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / config.LOCAL_CONFIG_FILE).write_text(
            "# dev settings\ncache_dir=/tmp/imagesolve-dev\nmax_workers=3\nfetch_timeout=5\n")
        config.reset_config()

        assert config.get_cache_dir() == config.Path("/tmp/imagesolve-dev")
        assert config.get_max_workers() == 3
        assert config.get_fetch_timeout() == 5
        assert config.is_dev_mode()

    def test_env_beats_local_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / config.LOCAL_CONFIG_FILE).write_text("max_workers=3\n")
        monkeypatch.setenv("IMAGESOLVE_MAX_WORKERS", "7")
        config.reset_config()
        assert config.get_max_workers() == 7

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for var in ("IMAGESOLVE_MAX_WORKERS", "IMAGESOLVE_FETCH_TIMEOUT"):
            monkeypatch.delenv(var, raising=False)
        config.reset_config()
        assert config.get_max_workers() is None
        assert config.get_fetch_timeout() == config.DEFAULT_FETCH_TIMEOUT
        assert not config.is_dev_mode()

    def test_malformed_env_integer(self, monkeypatch):
        monkeypatch.setenv("IMAGESOLVE_MAX_WORKERS", "many")
        config.reset_config()
        with pytest.raises(ConfigurationError, match="IMAGESOLVE_MAX_WORKERS") as exc_info:
            config.get_max_workers()
        assert "many" in exc_info.value.message

    def test_malformed_local_integer(self, tmp_path, monkeypatch):
        monkeypatch.delenv("IMAGESOLVE_FETCH_TIMEOUT", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / config.LOCAL_CONFIG_FILE).write_text("fetch_timeout=30s\n")
        config.reset_config()
        with pytest.raises(ConfigurationError, match="fetch_timeout"):
            config.get_fetch_timeout()

    def test_zero_workers_rejected(self, monkeypatch):
        monkeypatch.setenv("IMAGESOLVE_MAX_WORKERS", "0")
        config.reset_config()
        with pytest.raises(ConfigurationError):
            config.get_max_workers()

    def test_cache_entry_name(self):
        assert config.get_cache_entry_name("centos-9", "x86_64", "abcd") == "centos-9-x86_64-abcd"


class TestCancelToken:
    """Tests for cancellation tokens."""

    def test_not_cancelled(self):
        token = CancelToken()
        assert not token.cancelled
        token.check()
        check(None)

    def test_cancel(self):
        token = CancelToken()
        token.cancel("user abort")
        assert token.cancelled
        with pytest.raises(CancelledError, match="user abort") as exc_info:
            check(token)
        assert exc_info.value.reason == "cancelled"

    def test_deadline(self):
        token = CancelToken(timeout=0)
        time.sleep(0.01)
        assert token.cancelled
        with pytest.raises(CancelledError) as exc_info:
            token.check()
        assert exc_info.value.reason == "deadline"

    def test_parent_cancels_child(self):
        parent = CancelToken()
        child = parent.child()
        parent.cancel()
        assert child.cancelled
        with pytest.raises(CancelledError):
            child.check()

    def test_child_does_not_cancel_parent(self):
        parent = CancelToken()
        parent.child().cancel()
        assert not parent.cancelled
