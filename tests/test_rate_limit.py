"""Tests for sign-in rate limit keying and trusted proxy configuration."""

import pytest
from starlette.requests import Request

from memoshare import rate_limit
from memoshare.rate_limit import (
    configure_signin_limit,
    get_client_ip,
    is_trusted_proxy,
    signin_limit,
)


def make_request(client_ip, forwarded_for=None):
    headers = []
    if forwarded_for is not None:
        headers.append((b"x-forwarded-for", forwarded_for.encode()))
    return Request({"type": "http", "client": (client_ip, 1234), "headers": headers})


@pytest.fixture
def reset_networks(monkeypatch):
    monkeypatch.setattr(rate_limit, "_trusted_networks", None)


class TestTrustedProxy:
    """Trusted proxy detection."""

    def test_localhost_is_trusted(self, reset_networks):
        assert is_trusted_proxy("127.0.0.1") is True

    def test_private_ranges_are_trusted(self, reset_networks):
        assert is_trusted_proxy("10.0.1.5") is True
        assert is_trusted_proxy("172.17.0.1") is True
        assert is_trusted_proxy("192.168.1.100") is True

    def test_public_not_trusted(self, reset_networks):
        assert is_trusted_proxy("8.8.8.8") is False

    def test_garbage_not_trusted(self, reset_networks):
        assert is_trusted_proxy("testclient") is False

    def test_env_override(self, reset_networks, monkeypatch):
        monkeypatch.setenv("MEMOSHARE_TRUSTED_PROXY_CIDRS", "203.0.113.0/24, not-a-cidr")
        assert is_trusted_proxy("203.0.113.7") is True
        assert is_trusted_proxy("127.0.0.1") is False


class TestClientIP:
    """Client key extraction."""

    def test_direct_client(self, reset_networks):
        assert get_client_ip(make_request("8.8.8.8")) == "8.8.8.8"

    def test_forwarded_header_from_untrusted_peer_ignored(self, reset_networks):
        request = make_request("8.8.8.8", forwarded_for="1.2.3.4")
        assert get_client_ip(request) == "8.8.8.8"

    def test_forwarded_header_from_trusted_proxy(self, reset_networks):
        request = make_request("10.0.0.2", forwarded_for="198.51.100.4, 10.0.0.9")
        assert get_client_ip(request) == "198.51.100.4"

    def test_empty_forwarded_header(self, reset_networks):
        request = make_request("10.0.0.2", forwarded_for=" ")
        assert get_client_ip(request) == "10.0.0.2"


class TestSigninLimit:
    """Configured limit string."""

    def test_configured_value(self, monkeypatch):
        monkeypatch.setattr(rate_limit, "_signin_limit", None)
        configure_signin_limit("5/second")
        assert signin_limit() == "5/second"

    def test_falls_back_to_settings(self, monkeypatch):
        monkeypatch.setattr(rate_limit, "_signin_limit", None)
        assert signin_limit() == "20/minute"
