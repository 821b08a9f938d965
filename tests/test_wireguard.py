# tests/test_wireguard.py
"""
Tests for bring-up scripts, client config export and the
bootstrap helpers.
"""

import ipaddress
import os
import stat

import pytest

from wg_mesh.init_mesh import example_configuration, init_mesh
from wg_mesh.models import AddrPort
from wg_mesh.state import load_configuration
from wg_mesh.wireguard import (
    client_linux_script,
    client_osx_script,
    router_linux_script,
    write_client_conf,
)


class TestRouterLinuxScript:
    """Tests for router_linux_script"""

    def test_layout(self, mesh):
        lines = router_linux_script(mesh).splitlines()

        assert lines[0] == "cat > vpn.conf <<EOF"
        assert "\n".join(lines[1:1 + len(mesh.router_config().splitlines())]) == mesh.router_config()
        assert lines[-7:] == [
            "EOF",
            "ip link add dev wg0 type wireguard",
            "ip address add dev wg0 10.0.0.1/32",
            "wg setconf wg0 vpn.conf",
            "ip link set up dev wg0",
            "ip route add 10.0.1.0/24 dev wg0",
            "ip route add 10.0.2.1/32 dev wg0",
        ]

    def test_routes_ignore_master_subnet(self, mesh):
        mesh.master_subnet = ipaddress.IPv4Network("10.0.0.0/16")

        assert "10.0.0.0/16" not in router_linux_script(mesh)

    def test_custom_interface(self, mesh):
        assert "ip link add dev wg-mesh type wireguard" in router_linux_script(mesh, "wg-mesh")


class TestClientScripts:
    """Tests for client_linux_script / client_osx_script"""

    def test_linux_routes(self, mesh):
        lines = client_linux_script(mesh, "A").splitlines()

        assert "ip address add dev wg0 10.0.1.1/32" in lines
        assert lines[-3:] == [
            "ip route add 10.0.0.1 dev wg0",
            "ip route add 10.0.1.0/24 dev wg0",
            "ip route add 10.0.2.1/32 dev wg0",
        ]

    def test_linux_with_master_subnet(self, mesh):
        mesh.master_subnet = ipaddress.IPv4Network("10.0.0.0/16")
        lines = client_linux_script(mesh, "B").splitlines()

        assert lines[-2:] == [
            "ip route add 10.0.0.1 dev wg0",
            "ip route add 10.0.0.0/16 dev wg0",
        ]

    def test_osx_routes(self, mesh):
        lines = client_osx_script(mesh, "A").splitlines()

        assert "sudo wireguard-go utun9" in lines
        assert "sudo ifconfig utun9 inet 10.0.1.1 255.255.255.255 10.0.0.1" in lines
        assert lines[-2:] == [
            "sudo route add -net 10.0.1.0/24 -interface utun9",
            "sudo route add 10.0.2.1 -interface utun9",
        ]

    def test_script_embeds_client_config(self, mesh):
        assert mesh.client_config("A") in client_linux_script(mesh, "A")
        assert mesh.client_config("A") in client_osx_script(mesh, "A")

    def test_unknown_client(self, mesh):
        assert client_linux_script(mesh, "nope") is None
        assert client_osx_script(mesh, "nope") is None


class TestWriteClientConf:
    """Tests for write_client_conf"""

    def test_writes_private_file(self, mesh, tmp_path):
        path = write_client_conf(mesh, "A", tmp_path / "configs")

        assert path == tmp_path / "configs" / "A.conf"
        assert path.read_text() == mesh.client_config("A") + "\n"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_unknown_client(self, mesh, tmp_path):
        with pytest.raises(KeyError):
            write_client_conf(mesh, "nope", tmp_path)


class TestInitMesh:
    """Tests for init_mesh / example_configuration"""

    def test_init_saves_router_only(self, tmp_path):
        path = tmp_path / "mesh.yaml"
        config = init_mesh(
            "hub",
            ipaddress.IPv4Address("10.0.0.1"),
            AddrPort("vpn.example", 51820),
            master_subnet=ipaddress.IPv4Network("10.0.0.0/16"),
            config_path=path,
        )

        assert config.clients == []
        assert load_configuration(path) == config

    def test_init_refuses_overwrite(self, tmp_path):
        path = tmp_path / "mesh.yaml"
        path.write_text("router: {}\n")

        with pytest.raises(FileExistsError):
            init_mesh("hub", ipaddress.IPv4Address("10.0.0.1"), AddrPort("h", 1), config_path=path)

    def test_init_force(self, tmp_path):
        path = tmp_path / "mesh.yaml"
        path.write_text("router: {}\n")

        init_mesh("hub", ipaddress.IPv4Address("10.0.0.1"), AddrPort("h", 1), config_path=path, force=True)

        assert load_configuration(path).router.name == "hub"

    def test_example(self, fake_keys):
        config = example_configuration()

        assert config.router.name == "vpn-router"
        assert str(config.router.external_address) == "vpn.com:47654"
        assert config.client_names() == ["client-a", "client-b"]
        assert [str(ip) for ip in config.resolve_allowed_ips()] == ["10.0.1.0/24", "10.0.2.0/24"]
        assert fake_keys.calls == 3
