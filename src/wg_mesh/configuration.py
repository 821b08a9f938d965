# src/wg_mesh/configuration.py
from __future__ import annotations
import ipaddress
from dataclasses import dataclass, field
from typing import List, Optional

from .models import Endpoint, Router


@dataclass
class Configuration:
    router: Router
    clients: List[Endpoint] = field(default_factory=list)   # ordre d'insertion conservé
    master_subnet: Optional[ipaddress.IPv4Network] = None    # ex 10.0.0.0/16

    # ---------- Gestion des clients ----------

    def add_client(self, client: Endpoint) -> None:
        # Pas de contrôle d'unicité ici : c'est au CLI de refuser les doublons.
        self.clients.append(client)

    def remove_client_by_name(self, name: str) -> bool:
        for i, client in enumerate(self.clients):
            if client.name == name:
                del self.clients[i]
                return True
        return False

    def client_by_name(self, name: str) -> Optional[Endpoint]:
        return next((c for c in self.clients if c.name == name), None)

    def client_names(self) -> List[str]:
        return [c.name for c in self.clients]

    # ---------- Résolution des AllowedIPs ----------

    def resolve_allowed_ips(self) -> List[ipaddress.IPv4Network]:
        """
        AllowedIPs pour tout le mesh : le master subnet seul s'il est
        défini, sinon les AllowedIPs effectives de chaque client, dans
        l'ordre des clients.
        """
        if self.master_subnet is not None:
            return [self.master_subnet]

        resolved: List[ipaddress.IPv4Network] = []
        for client in self.clients:
            resolved.extend(client.effective_allowed_ips())
        return resolved

    # ---------- Rendu des configs ----------

    def client_config(self, name: str) -> Optional[str]:
        client = self.client_by_name(name)
        if client is None:
            return None

        return "\n\n".join([
            client.render_interface(),
            self.router.render_peer_for(client, self.resolve_allowed_ips()),
        ])

    def router_config(self) -> str:
        blocks = [self.router.render_interface()]
        blocks += [c.render_peer() for c in self.clients]
        return "\n\n".join(blocks)
