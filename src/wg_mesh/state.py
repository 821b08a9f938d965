# src/wg_mesh/state.py
from __future__ import annotations
import ipaddress
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml

from .configuration import Configuration
from .models import AddrPort, Endpoint, Router, keepalive_seconds

logger = logging.getLogger("wg-mesh.state")

DEFAULT_CONFIG_PATH = Path("data/mesh.yaml")
YAML_SUFFIXES = (".yaml", ".yml")


class ConfigurationError(ValueError):
    """Document absent d'un champ, illisible ou avec une valeur invalide."""


# ---------- Conversion dict <-> modèle ----------

def endpoint_to_dict(endpoint: Endpoint) -> dict:
    ext = endpoint.external_address
    return {
        "name": endpoint.name,
        "private_key": endpoint.private_key,
        "public_key": endpoint.public_key,
        "external_address": (
            {"address": ext.address, "port": ext.port} if ext is not None else None
        ),
        "internal_address": str(endpoint.internal_address),
        "allowed_ips": [str(ip) for ip in endpoint.allowed_ips],
        "persistent_keepalive": endpoint.persistent_keepalive,
    }


def configuration_to_dict(config: Configuration) -> dict:
    return {
        "router": endpoint_to_dict(config.router.endpoint),
        "clients": [endpoint_to_dict(c) for c in config.clients],
        "master_subnet": (
            str(config.master_subnet) if config.master_subnet is not None else None
        ),
    }


def _field(data: dict, key: str, where: str) -> Any:
    if not isinstance(data, dict):
        raise ConfigurationError(f"{where}: expected a mapping")
    if key not in data:
        raise ConfigurationError(f"{where}: missing field '{key}'")
    return data[key]


def dict_to_endpoint(data: dict, where: str = "endpoint") -> Endpoint:
    name = _field(data, "name", where)
    where = f"{where} '{name}'"

    ext_data = data.get("external_address")
    try:
        external_address = None
        if ext_data is not None:
            external_address = AddrPort(
                address=_field(ext_data, "address", f"{where}.external_address"),
                port=int(_field(ext_data, "port", f"{where}.external_address")),
            )
        internal_address = ipaddress.IPv4Address(_field(data, "internal_address", where))
        allowed_ips = [ipaddress.IPv4Network(ip) for ip in data.get("allowed_ips") or []]
        keepalive = data.get("persistent_keepalive")
        if keepalive is not None:
            keepalive = keepalive_seconds(keepalive)
    except ConfigurationError:
        raise
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where}: {e}") from e

    return Endpoint(
        name=name,
        private_key=_field(data, "private_key", where),
        public_key=_field(data, "public_key", where),
        internal_address=internal_address,
        external_address=external_address,
        allowed_ips=allowed_ips,
        persistent_keepalive=keepalive,
    )


def dict_to_configuration(data: dict) -> Configuration:
    router = Router(endpoint=dict_to_endpoint(_field(data, "router", "document"), "router"))
    clients = [
        dict_to_endpoint(c, f"clients[{i}]")
        for i, c in enumerate(data.get("clients") or [])
    ]

    master_subnet = data.get("master_subnet")
    if master_subnet is not None:
        try:
            master_subnet = ipaddress.IPv4Network(master_subnet)
        except ValueError as e:
            raise ConfigurationError(f"master_subnet: {e}") from e

    return Configuration(router=router, clients=clients, master_subnet=master_subnet)


# ---------- Fichier ----------

def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in YAML_SUFFIXES


def load_configuration(path: Optional[Path] = None) -> Configuration:
    path = Path(path or DEFAULT_CONFIG_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) if _is_yaml(path) else json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    config = dict_to_configuration(data)
    logger.debug(f"Loaded {path} ({len(config.clients)} clients)")
    return config


def save_configuration(config: Configuration, path: Optional[Path] = None) -> Path:
    """
    Écrit tout le document de façon atomique : fichier temporaire dans le
    même dossier puis os.replace. Mode 600 (contient les clés privées).
    """
    path = Path(path or DEFAULT_CONFIG_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = configuration_to_dict(config)

    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            if _is_yaml(path):
                yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False)
            else:
                json.dump(data, f, indent=2)
                f.write("\n")
        os.chmod(tmp, 0o600)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise

    logger.info(f"Saved configuration to {path}")
    return path
