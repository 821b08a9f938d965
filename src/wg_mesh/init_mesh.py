# src/wg_mesh/init_mesh.py

from __future__ import annotations
import ipaddress
import logging
from pathlib import Path
from typing import Optional

from .configuration import Configuration
from .models import AddrPort, Endpoint, KeypairProvider, Router
from .state import save_configuration

logger = logging.getLogger("wg-mesh.init")


def init_mesh(
    router_name: str,
    internal_address: ipaddress.IPv4Address,
    external_address: AddrPort,
    master_subnet: Optional[ipaddress.IPv4Network] = None,
    config_path: Optional[Path] = None,
    force: bool = False,
) -> Configuration:
    if config_path is not None and config_path.exists() and not force:
        raise FileExistsError(f"Configuration already exists: {config_path}")

    router = Router.create(router_name, internal_address, external_address)
    config = Configuration(router=router, master_subnet=master_subnet)

    save_configuration(config, config_path)
    logger.info(f"Initialized mesh with router '{router_name}'")
    return config


def example_configuration(keypair_provider: Optional[KeypairProvider] = None) -> Configuration:
    router = Router.create(
        "vpn-router",
        ipaddress.IPv4Address("10.0.0.1"),
        AddrPort("vpn.com", 47654),
        keypair_provider,
    )

    config = Configuration(router=router)

    config.add_client(
        Endpoint.create("client-a", ipaddress.IPv4Address("10.0.1.1"), keypair_provider)
        .with_allowed_ip(ipaddress.IPv4Network("10.0.1.0/24"))
        .with_persistent_keepalive(25)
    )
    config.add_client(
        Endpoint.create("client-b", ipaddress.IPv4Address("10.0.2.1"), keypair_provider)
        .with_allowed_ip(ipaddress.IPv4Network("10.0.2.0/24"))
        .with_persistent_keepalive(25)
    )

    return config
