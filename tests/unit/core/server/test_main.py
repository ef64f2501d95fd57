"""Tests for the server entry point's bind guard."""

from __future__ import annotations

import pytest

from vitalsync.core.server.main import _is_loopback_host, run


class TestLoopbackHost:
    @pytest.mark.parametrize("host", ["127.0.0.1", "localhost", "::1"])
    def test_loopback(self, host):
        assert _is_loopback_host(host)

    @pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "example.com"])
    def test_not_loopback(self, host):
        assert not _is_loopback_host(host)


class TestRun:
    def test_refuses_public_bind(self, monkeypatch):
        monkeypatch.setenv("VITALSYNC_HOST", "0.0.0.0")
        monkeypatch.setenv("VITALSYNC_ALLOW_INSECURE_BIND", "false")
        with pytest.raises(RuntimeError, match="non-loopback"):
            run()
