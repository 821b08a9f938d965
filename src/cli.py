import argparse
import ipaddress
import logging
import os
from pathlib import Path
from typing import List

import qrcode

from wg_mesh.init_mesh import example_configuration, init_mesh
from wg_mesh.keys import KeypairError
from wg_mesh.models import AddrPort, Endpoint, keepalive_seconds
from wg_mesh.state import (
    ConfigurationError,
    DEFAULT_CONFIG_PATH,
    load_configuration,
    save_configuration,
)
from wg_mesh.wireguard import (
    LINUX_INTERFACE,
    OSX_INTERFACE,
    client_linux_script,
    client_osx_script,
    router_linux_script,
    write_client_conf,
)

logger = logging.getLogger("wg-mesh.cli")


def _subnet_list(value: str) -> List[ipaddress.IPv4Network]:
    return [ipaddress.IPv4Network(s.strip()) for s in value.split(",") if s.strip()]


# ---------------------------------------------------
# Commande : init / example
# ---------------------------------------------------

def cmd_init(args):
    config = init_mesh(
        router_name=args.name,
        internal_address=args.internal_address,
        external_address=args.endpoint,
        master_subnet=args.master_subnet,
        config_path=args.config,
        force=args.force,
    )

    print("[+] Mesh initialisé.")
    print("[+] Routeur  :", config.router.name, f"({config.router.internal_address})")
    print("[+] Endpoint :", config.router.external_address)
    print(f"[+] Fichier {args.config} créé.")


def cmd_example(args):
    if args.config.exists() and not args.force:
        print(f"[ERREUR] {args.config} existe déjà (utilise --force).")
        return 1

    save_configuration(example_configuration(), args.config)
    print(f"[OK] Configuration d'exemple enregistrée : {args.config}")


# ---------------------------------------------------
# Commande : add-client
# ---------------------------------------------------

def cmd_add_client(args):
    config = load_configuration(args.config)

    if config.client_by_name(args.name) is not None:
        print(f"[ERREUR] Le client '{args.name}' existe déjà.")
        return 1

    client = (
        Endpoint.create(args.name, args.internal_address)
        .with_external_address(args.endpoint)
        .with_persistent_keepalive(args.persistent_keepalive)
    )
    for net in args.allowed_ips or []:
        client.add_allowed_ip(net)

    config.add_client(client)
    save_configuration(config, args.config)

    print(f"[+] Client ajouté : {client.name}")


# ---------------------------------------------------
# Commande : remove-client
# ---------------------------------------------------

def cmd_remove_client(args):
    config = load_configuration(args.config)

    if not config.remove_client_by_name(args.name):
        print(f"[ERREUR] Client introuvable : {args.name}")
        return 1

    save_configuration(config, args.config)
    print(f"[OK] Client supprimé : {args.name}")


# ---------------------------------------------------
# Commande : list-clients
# ---------------------------------------------------

def cmd_list(args):
    config = load_configuration(args.config)

    print("=== Routeur ===")
    r = config.router
    print(f"Nom       : {r.name}")
    print(f"Adresse   : {r.internal_address}")
    print(f"Endpoint  : {r.external_address or '-'}")
    print(f"Master    : {config.master_subnet or '-'}\n")

    print("=== Clients ===")
    if not config.clients:
        print("Aucun client.")
    else:
        for c in config.clients:
            allowed = ",".join(str(ip) for ip in c.effective_allowed_ips())
            print(f"- {c.name} ({c.internal_address}) {allowed}")


# ---------------------------------------------------
# Commande : set-master-subnet
# ---------------------------------------------------

def cmd_set_master_subnet(args):
    if args.clear == (args.subnet is not None):
        print("[ERREUR] Donne soit un sous-réseau, soit --clear.")
        return 1

    config = load_configuration(args.config)
    config.master_subnet = None if args.clear else args.subnet
    save_configuration(config, args.config)

    print(f"[OK] Master subnet : {config.master_subnet or 'aucun'}")


# ---------------------------------------------------
# Commandes : router-config / client-config
# ---------------------------------------------------

def cmd_router_config(args):
    config = load_configuration(args.config)

    if args.linux_script:
        print(router_linux_script(config, args.interface or LINUX_INTERFACE), end="")
    else:
        print(config.router_config())


def cmd_client_config(args):
    config = load_configuration(args.config)

    if args.linux_script:
        out = client_linux_script(config, args.name, args.interface or LINUX_INTERFACE)
    elif args.osx_script:
        out = client_osx_script(config, args.name, args.interface or OSX_INTERFACE)
    else:
        out = config.client_config(args.name)
        out = out + "\n" if out is not None else None

    if out is None:
        print(f"[ERREUR] Client introuvable : {args.name}")
        return 1

    print(out, end="")


# ---------------------------------------------------
# Commandes : export-client / generate-qr
# ---------------------------------------------------

def cmd_export_client(args):
    config = load_configuration(args.config)

    try:
        path = write_client_conf(config, args.name, args.out_dir)
    except KeyError:
        print(f"[ERREUR] Client introuvable : {args.name}")
        return 1

    print(f"[OK] Config générée : {path}")


def cmd_generate_qr(args):
    config = load_configuration(args.config)

    conf = config.client_config(args.name)
    if conf is None:
        print(f"[ERREUR] Client introuvable : {args.name}")
        return 1

    img = qrcode.make(conf)
    args.out_dir.mkdir(parents=True, exist_ok=True)
    path = args.out_dir / f"{args.name}.png"
    img.save(path)

    print(f"[OK] QR code généré : {path}")


# ---------------------------------------------------
# CLI / Parser
# ---------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wg-mesh", description="Simple wireguard mesh configuration")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=Path(os.environ.get("WG_MESH_CONFIG", DEFAULT_CONFIG_PATH)),
        help="fichier de configuration (.yaml/.yml ou .json)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd")

    # init
    p_init = sub.add_parser("init", help="créer une configuration avec un routeur")
    p_init.add_argument("--name", default="vpn-router")
    p_init.add_argument("-i", "--internal-address", type=ipaddress.IPv4Address, required=True)
    p_init.add_argument("-e", "--endpoint", type=AddrPort.parse, required=True, help="host:port")
    p_init.add_argument("-m", "--master-subnet", type=ipaddress.IPv4Network)
    p_init.add_argument("--force", action="store_true")
    p_init.set_defaults(func=cmd_init)

    # example
    p_example = sub.add_parser("example", help="générer une configuration d'exemple")
    p_example.add_argument("--force", action="store_true")
    p_example.set_defaults(func=cmd_example)

    # add-client
    p_add = sub.add_parser("add-client")
    p_add.add_argument("name")
    p_add.add_argument("-i", "--internal-address", type=ipaddress.IPv4Address, required=True)
    p_add.add_argument("-a", "--allowed-ips", type=_subnet_list, help="sous-réseaux séparés par des virgules")
    p_add.add_argument("-p", "--persistent-keepalive", type=keepalive_seconds, help="secondes (0..65535)")
    p_add.add_argument("-e", "--endpoint", type=AddrPort.parse, help="host:port si joignable")
    p_add.set_defaults(func=cmd_add_client)

    # remove-client
    p_rm = sub.add_parser("remove-client")
    p_rm.add_argument("name")
    p_rm.set_defaults(func=cmd_remove_client)

    # list-clients
    p_list = sub.add_parser("list-clients")
    p_list.set_defaults(func=cmd_list)

    # set-master-subnet
    p_master = sub.add_parser("set-master-subnet")
    p_master.add_argument("subnet", nargs="?", type=ipaddress.IPv4Network)
    p_master.add_argument("--clear", action="store_true")
    p_master.set_defaults(func=cmd_set_master_subnet)

    # router-config
    p_router = sub.add_parser("router-config")
    p_router.add_argument("-l", "--linux-script", action="store_true")
    p_router.add_argument("--interface")
    p_router.set_defaults(func=cmd_router_config)

    # client-config
    p_client = sub.add_parser("client-config")
    p_client.add_argument("name")
    scripts = p_client.add_mutually_exclusive_group()
    scripts.add_argument("-l", "--linux-script", action="store_true")
    scripts.add_argument("-o", "--osx-script", action="store_true")
    p_client.add_argument("--interface")
    p_client.set_defaults(func=cmd_client_config)

    # export-client
    p_export = sub.add_parser("export-client")
    p_export.add_argument("name")
    p_export.add_argument("--out-dir", type=Path, default=Path("configs"))
    p_export.set_defaults(func=cmd_export_client)

    # generate-qr
    p_qr = sub.add_parser("generate-qr")
    p_qr.add_argument("name")
    p_qr.add_argument("--out-dir", type=Path, default=Path("configs"))
    p_qr.set_defaults(func=cmd_generate_qr)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return args.func(args) or 0
    except (ConfigurationError, KeypairError, OSError) as e:
        logger.debug("command failed", exc_info=True)
        print(f"[ERREUR] {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
