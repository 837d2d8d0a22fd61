"""Tests for the server entry point's bind guard."""

from __future__ import annotations

import pytest

from livenew.core.config.settings import Settings
from livenew.core.server.main import _is_loopback_host, check_bind


class TestLoopback:
    @pytest.mark.parametrize("host", ["127.0.0.1", "::1", "localhost", "127.0.0.5"])
    def test_loopback_hosts(self, host):
        assert _is_loopback_host(host)

    @pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "example.com"])
    def test_non_loopback_hosts(self, host):
        assert not _is_loopback_host(host)


class TestCheckBind:
    def test_default_settings_pass(self):
        check_bind(Settings())

    def test_public_bind_refused(self):
        with pytest.raises(RuntimeError, match="0.0.0.0"):
            check_bind(Settings(livenew_host="0.0.0.0"))

    def test_explicit_override(self):
        check_bind(Settings(livenew_host="0.0.0.0", livenew_allow_insecure_bind=True))

    def test_stdio_never_binds(self):
        check_bind(Settings(livenew_host="0.0.0.0", livenew_transport="stdio"))
