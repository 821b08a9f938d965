# src/wg_mesh/models.py
from __future__ import annotations
import ipaddress
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from . import keys


KeypairProvider = Callable[[], Tuple[str, str]]

KEEPALIVE_MAX = 65535


def keepalive_seconds(value) -> int:
    """
    Convertit et vérifie un PersistentKeepalive (0..65535 secondes).
    """
    seconds = int(value)
    if not 0 <= seconds <= KEEPALIVE_MAX:
        raise ValueError(f"Persistent keepalive out of range: {seconds}")
    return seconds


def _new_keypair(provider: Optional[KeypairProvider]) -> Tuple[str, str]:
    # résolu à l'appel pour que keys.generate_keypair reste remplaçable
    if provider is None:
        provider = keys.generate_keypair
    return provider()


@dataclass(frozen=True)
class AddrPort:
    address: str   # nom d'hôte ou IP publique, ex "vpn.example"
    port: int      # port UDP, ex 51820

    def __post_init__(self):
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")

    @classmethod
    def parse(cls, value: str) -> AddrPort:
        """
        Lit 'host:port'. Coupe sur le dernier ':'.
        """
        host, sep, port = value.rpartition(":")
        if not sep or not host:
            raise ValueError(f"Expected host:port, got '{value}'")
        try:
            port_num = int(port)
        except ValueError:
            raise ValueError(f"Invalid port in '{value}'") from None
        return cls(address=host, port=port_num)

    def __str__(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass
class Endpoint:
    name: str
    private_key: str
    public_key: str
    internal_address: ipaddress.IPv4Address      # ex 10.0.1.1
    external_address: Optional[AddrPort] = None  # seulement si joignable de l'extérieur
    allowed_ips: List[ipaddress.IPv4Network] = field(default_factory=list)
    persistent_keepalive: Optional[int] = None   # secondes

    @classmethod
    def create(
        cls,
        name: str,
        internal_address: ipaddress.IPv4Address,
        keypair_provider: Optional[KeypairProvider] = None,
    ) -> Endpoint:
        private_key, public_key = _new_keypair(keypair_provider)
        return cls(
            name=name,
            private_key=private_key,
            public_key=public_key,
            internal_address=internal_address,
        )

    # ---------- Chaînage ----------

    def with_external_address(self, external_address: Optional[AddrPort]) -> Endpoint:
        self.external_address = external_address
        return self

    def with_allowed_ip(self, allowed_ip: ipaddress.IPv4Network) -> Endpoint:
        self.add_allowed_ip(allowed_ip)
        return self

    def with_persistent_keepalive(self, keepalive: Optional[int]) -> Endpoint:
        if keepalive is not None:
            keepalive = keepalive_seconds(keepalive)
        self.persistent_keepalive = keepalive
        return self

    def add_allowed_ip(self, allowed_ip: ipaddress.IPv4Network) -> None:
        self.allowed_ips.append(allowed_ip)

    # ---------- Rendu ----------

    def effective_allowed_ips(self) -> List[ipaddress.IPv4Network]:
        """
        AllowedIPs explicites, sinon le /32 de l'adresse interne.
        Jamais vide.
        """
        if self.allowed_ips:
            return list(self.allowed_ips)
        return [ipaddress.IPv4Network(f"{self.internal_address}/32")]

    def render_interface(self) -> str:
        lines = [
            "[Interface]",
            f"# name: {self.name}",
            f"PrivateKey = {self.private_key}",
        ]
        if self.external_address is not None:
            lines.append(f"ListenPort = {self.external_address.port}")
        return "\n".join(lines)

    def render_peer(self) -> str:
        return "\n".join(_peer_lines(self, self.effective_allowed_ips()))


def _peer_lines(
    endpoint: Endpoint,
    allowed_ips: List[ipaddress.IPv4Network],
) -> List[str]:
    lines = [
        "[Peer]",
        f"# {endpoint.name}",
        f"PublicKey = {endpoint.public_key}",
    ]
    if endpoint.external_address is not None:
        lines.append(f"Endpoint = {endpoint.external_address}")
    lines.append(f"AllowedIPs = {', '.join(str(ip) for ip in allowed_ips)}")
    return lines


@dataclass
class Router:
    endpoint: Endpoint

    @classmethod
    def create(
        cls,
        name: str,
        internal_address: ipaddress.IPv4Address,
        external_address: AddrPort,
        keypair_provider: Optional[KeypairProvider] = None,
    ) -> Router:
        endpoint = Endpoint.create(name, internal_address, keypair_provider)
        return cls(endpoint=endpoint.with_external_address(external_address))

    @property
    def name(self) -> str:
        return self.endpoint.name

    @property
    def public_key(self) -> str:
        return self.endpoint.public_key

    @property
    def internal_address(self) -> ipaddress.IPv4Address:
        return self.endpoint.internal_address

    @property
    def external_address(self) -> Optional[AddrPort]:
        return self.endpoint.external_address

    def render_interface(self) -> str:
        return self.endpoint.render_interface()

    def render_peer_for(
        self,
        client: Endpoint,
        allowed_ips: List[ipaddress.IPv4Network],
    ) -> str:
        """
        Bloc [Peer] du routeur dans la config de `client`.

        Les AllowedIPs viennent de l'appelant (résolution sur tout le mesh),
        pas des valeurs par défaut du routeur. Le keepalive du client, s'il
        existe, s'applique au tunnel client -> routeur.
        """
        lines = _peer_lines(self.endpoint, allowed_ips)
        if client.persistent_keepalive is not None:
            lines.append(f"PersistentKeepalive = {client.persistent_keepalive}")
        return "\n".join(lines)
