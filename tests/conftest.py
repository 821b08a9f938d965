# tests/conftest.py
"""
Pytest fixtures for wg-mesh tests
No test may call the real wg(8) binary: key generation is replaced
by a deterministic fake for every test.
"""

import ipaddress
import itertools

import pytest

from wg_mesh import keys
from wg_mesh.configuration import Configuration
from wg_mesh.models import AddrPort, Endpoint, Router


class FakeKeypairProvider:
    """Returns priv-N / pub-N pairs, N counting from 1."""

    def __init__(self):
        self._counter = itertools.count(1)
        self.calls = 0

    def __call__(self):
        n = next(self._counter)
        self.calls += 1
        return f"priv-{n}", f"pub-{n}"


@pytest.fixture(autouse=True)
def fake_keys(monkeypatch):
    provider = FakeKeypairProvider()
    monkeypatch.setattr(keys, "generate_keypair", provider)
    return provider


@pytest.fixture
def router():
    return Router.create(
        "R",
        ipaddress.IPv4Address("10.0.0.1"),
        AddrPort("vpn.example", 51820),
    )


@pytest.fixture
def client_a():
    return (
        Endpoint.create("A", ipaddress.IPv4Address("10.0.1.1"))
        .with_allowed_ip(ipaddress.IPv4Network("10.0.1.0/24"))
        .with_persistent_keepalive(25)
    )


@pytest.fixture
def client_b():
    return Endpoint.create("B", ipaddress.IPv4Address("10.0.2.1"))


@pytest.fixture
def mesh(router, client_a, client_b):
    config = Configuration(router=router)
    config.add_client(client_a)
    config.add_client(client_b)
    return config
