# src/wg_mesh/keys.py
from __future__ import annotations
import logging
import subprocess
from typing import List, Optional

logger = logging.getLogger("wg-mesh.keys")


class KeypairError(RuntimeError):
    """wg(8) absent ou en échec pendant la génération des clés."""


def _run(cmd: List[str], input: Optional[str] = None) -> str:
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        out = subprocess.run(cmd, input=input, capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise KeypairError(f"'{cmd[0]}' not found, is wireguard-tools installed?") from e
    except subprocess.CalledProcessError as e:
        raise KeypairError(f"{' '.join(cmd)} failed: {(e.stderr or '').strip()}") from e
    return out.stdout.strip()


def generate_keypair() -> tuple[str, str]:
    """
    Retourne (private_key, public_key) en utilisant wg(8).
    Nécessite 'wg' installé sur la machine.
    """
    priv = _run(["wg", "genkey"])
    # pubkey lit la clé privée sur stdin
    pub = _run(["wg", "pubkey"], input=priv + "\n")
    logger.info(f"Generated keypair, public key: {pub}")
    return priv, pub
