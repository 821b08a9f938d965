# src/wg_mesh/wireguard.py
from __future__ import annotations
import ipaddress
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .configuration import Configuration

logger = logging.getLogger("wg-mesh.wireguard")

LINUX_INTERFACE = "wg0"
OSX_INTERFACE = "utun9"
CONF_FILENAME = "vpn.conf"


# ---------- Scripts de montage ----------

def _heredoc(conf: str) -> List[str]:
    return [f"cat > {CONF_FILENAME} <<EOF", conf, "EOF"]


def _linux_up(interface: str, address: ipaddress.IPv4Address) -> List[str]:
    return [
        f"ip link add dev {interface} type wireguard",
        f"ip address add dev {interface} {address}/32",
        f"wg setconf {interface} {CONF_FILENAME}",
        f"ip link set up dev {interface}",
    ]


def _linux_routes(interface: str, routes: Iterable[object]) -> List[str]:
    return [f"ip route add {r} dev {interface}" for r in routes]


def router_linux_script(config: Configuration, interface: str = LINUX_INTERFACE) -> str:
    """
    Script shell : écrit la config du routeur, monte `interface` et ajoute
    une route par AllowedIP de client.
    """
    routes = [ip for c in config.clients for ip in c.effective_allowed_ips()]

    lines = _heredoc(config.router_config())
    lines += _linux_up(interface, config.router.internal_address)
    lines += _linux_routes(interface, routes)
    return "\n".join(lines) + "\n"


def client_linux_script(
    config: Configuration,
    name: str,
    interface: str = LINUX_INTERFACE,
) -> Optional[str]:
    client = config.client_by_name(name)
    conf = config.client_config(name)
    if client is None or conf is None:
        return None

    lines = _heredoc(conf)
    lines += _linux_up(interface, client.internal_address)
    lines += _linux_routes(
        interface, [config.router.internal_address, *config.resolve_allowed_ips()]
    )
    return "\n".join(lines) + "\n"


def client_osx_script(
    config: Configuration,
    name: str,
    interface: str = OSX_INTERFACE,
) -> Optional[str]:
    client = config.client_by_name(name)
    conf = config.client_config(name)
    if client is None or conf is None:
        return None

    lines = _heredoc(conf)
    lines += [
        f"sudo wireguard-go {interface}",
        f"sudo wg setconf {interface} {CONF_FILENAME}",
        f"sudo ifconfig {interface} inet {client.internal_address} 255.255.255.255 "
        f"{config.router.internal_address}",
    ]

    for net in config.resolve_allowed_ips():
        if net.prefixlen == 32:
            lines.append(f"sudo route add {net.network_address} -interface {interface}")
        else:
            lines.append(f"sudo route add -net {net} -interface {interface}")

    return "\n".join(lines) + "\n"


# ---------- Export ----------

def write_client_conf(
    config: Configuration,
    name: str,
    out_dir: Path = Path("configs"),
) -> Path:
    """
    Écrit <out_dir>/<name>.conf (mode 600, contient la clé privée).
    """
    conf = config.client_config(name)
    if conf is None:
        raise KeyError(f"Unknown client '{name}'")

    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{name}.conf"
    with path.open("w", encoding="utf-8") as f:
        f.write(conf + "\n")
    path.chmod(0o600)

    logger.info(f"Wrote client config to {path}")
    return path
