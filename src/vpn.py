import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from simplevpn.conf import parse_conf
from simplevpn.connection import ConnectionController, InterfaceState, Transition
from simplevpn.environment import NetworkEnvironment, require_root, require_tools
from simplevpn.errors import ConfigNotFound, VpnError
from simplevpn.export import write_config_qr
from simplevpn.init_client import client_keys, init_client
from simplevpn.init_server import init_server
from simplevpn.models import Role
from simplevpn.registry import PeerRegistry
from simplevpn.settings import Settings, TOOL_NAME, VERSION
from simplevpn.wireguard import WgTools

log = logging.getLogger("vpn")

RULE = "=" * 40


class _MarkerFormatter(logging.Formatter):
    MARKERS = {
        logging.DEBUG: "[.]",
        logging.INFO: "[*]",
        logging.WARNING: "[!]",
        logging.ERROR: "[ERREUR]",
        logging.CRITICAL: "[ERREUR]",
    }

    def format(self, record):
        marker = self.MARKERS.get(record.levelno, "[*]")
        return f"{marker} {super().format(record)}"


def setup_logging(level: str) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(_MarkerFormatter("%(message)s"))
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), handlers=[handler])


def make_tools() -> WgTools:
    return WgTools()


def make_environment(settings: Settings) -> NetworkEnvironment:
    return NetworkEnvironment(settings)


def _controller(settings: Settings, role: Role) -> ConnectionController:
    tools = make_tools()
    profile = make_environment(settings).detect(probe_egress=False)
    return ConnectionController(tools, profile, settings.interface, role)


def _print_status(title: str, controller: ConnectionController) -> InterfaceState:
    report = controller.status()
    print(RULE)
    print(f"  {title}")
    print(RULE)
    if report.state is InterfaceState.UP:
        print(report.details.rstrip("\n"))
    else:
        print(f"  Interface {report.interface} is not running.")
    print(RULE)
    return report.state


# ---------------------------------------------------
# Commande : server-setup
# ---------------------------------------------------

def cmd_server_setup(args, settings: Settings) -> int:
    if args.port is not None:
        settings = dataclasses.replace(settings, listen_port=args.port)

    print("[*] Initialisation du serveur WireGuard...")
    summary = init_server(settings, make_tools(), make_environment(settings))

    print()
    print(RULE)
    print("  VPN Server is running!")
    print(RULE)
    print(f"  Interface:   {summary.interface}")
    print(f"  VPN IP:      {summary.address}")
    print(f"  Listen port: {summary.listen_port}")
    print(f"  Public key:  {summary.public_key}")
    print(f"  Config:      {summary.config_path}")
    print()
    print("  Give clients your public key and")
    print(f"  endpoint (your-server-ip:{summary.listen_port}) to connect.")
    print()
    print("  Add peers with:")
    print("    sudo vpn add-peer <pubkey> <vpn-ip>")
    print(RULE)
    return 0


# ---------------------------------------------------
# Commande : add-peer
# ---------------------------------------------------

def cmd_add_peer(args, settings: Settings) -> int:
    require_root("add-peer")
    require_tools("wg")
    profile = make_environment(settings).detect(probe_egress=False)
    registry = PeerRegistry(make_tools(), profile, settings.interface)

    result = registry.add_peer(settings.server_conf_path, args.public_key, args.vpn_ip, label=args.label)

    print(f"[+] Fichier serveur mis à jour : {settings.server_conf_path}")
    if result.live_applied:
        print(f"[+] Peer ajouté à chaud sur {result.interface} : {', '.join(result.peer.allowed_ips)}")
    else:
        print("[!] Interface non mise à jour, le peer sera actif au prochain redémarrage :")
        print(f"    sudo wg-quick down {settings.interface} && sudo wg-quick up {settings.interface}")
    return 0


# ---------------------------------------------------
# Commande : server-status
# ---------------------------------------------------

def cmd_server_status(args, settings: Settings) -> int:
    controller = _controller(settings, Role.SERVER)
    _print_status("WireGuard Server Status", controller)

    path = settings.server_conf_path
    try:
        conf = parse_conf(path.read_text(encoding="utf-8"), role=Role.SERVER)
    except FileNotFoundError:
        print(f"[!] Aucun fichier serveur : {path}")
    except PermissionError:
        log.debug("Cannot read %s without root", path)
    else:
        print(f"Peers configurés : {len(conf.peers)}")
    return 0


# ---------------------------------------------------
# Commandes client
# ---------------------------------------------------

def cmd_client_setup(args, settings: Settings) -> int:
    summary = init_client(
        settings,
        make_tools(),
        make_environment(settings),
        server_public_key=args.server_public_key,
        endpoint=args.endpoint,
        address=args.vpn_ip,
        mode=args.mode,
    )

    print()
    print(RULE)
    print("  Client configured!")
    print(RULE)
    print(f"  Your public key: {summary.public_key}")
    print(f"  Your VPN IP:     {summary.address}")
    print(f"  Server:          {summary.endpoint}")
    print(f"  Mode:            {summary.mode.value}")
    print()
    print("  Next steps:")
    print("  1. Give your public key to the server admin")
    print("  2. Run: vpn connect")
    print(RULE)
    return 0


def cmd_connect(args, settings: Settings) -> int:
    require_tools("wg", "wg-quick")
    controller = _controller(settings, Role.CLIENT)
    if controller.connect() is Transition.CONNECTED:
        print("[+] VPN connected!")
        print()
        _print_status("WireGuard Client Status", controller)
    return 0


def cmd_disconnect(args, settings: Settings) -> int:
    controller = _controller(settings, Role.CLIENT)
    controller.disconnect()
    print("[+] VPN disconnected")
    return 0


def cmd_status(args, settings: Settings) -> int:
    _print_status("WireGuard Client Status", _controller(settings, Role.CLIENT))
    return 0


def cmd_keys(args, settings: Settings) -> int:
    identity = client_keys(settings, make_tools(), make_environment(settings))
    print(f"[+] Client public key: {identity.public_key}")
    print()
    print("  >>> Give this public key to the server admin to add you as a peer <<<")
    return 0


def cmd_client_qr(args, settings: Settings) -> int:
    conf_path = settings.client_conf_path
    if not conf_path.exists():
        raise ConfigNotFound(f"Client config not found: {conf_path}", hint="Run 'vpn client-setup' first.")

    out = Path(args.output) if args.output else settings.config_dir / f"{settings.interface}.png"
    write_config_qr(conf_path.read_text(encoding="utf-8"), out)
    print(f"[OK] QR code généré : {out}")
    return 0


def cmd_cleanup(args, settings: Settings) -> int:
    remaining = _controller(settings, Role.CLIENT).teardown()
    if not remaining:
        print("[OK] All WireGuard interfaces are down")
        return 0
    print(f"[!] Still running: {' '.join(remaining)}")
    print("To manually stop:")
    for iface in remaining:
        print(f"  sudo wg-quick down {iface}")
    return 0


def cmd_version(args, settings: Settings) -> int:
    print(f"{TOOL_NAME} v{VERSION}")
    return 0


# ---------------------------------------------------
# CLI / Parser
# ---------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vpn", description=f"{TOOL_NAME}: WireGuard VPN from the terminal")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug output")
    parser.add_argument("--version", action="version", version=f"{TOOL_NAME} v{VERSION}")
    sub = parser.add_subparsers(dest="cmd")

    # serveur
    p_setup = sub.add_parser("server-setup", help="set up this machine as a VPN server")
    p_setup.add_argument("--port", type=int, default=None)
    p_setup.set_defaults(func=cmd_server_setup)

    p_add = sub.add_parser("add-peer", help="add a client to the server")
    p_add.add_argument("public_key")
    p_add.add_argument("vpn_ip")
    p_add.add_argument("--label", default=None)
    p_add.set_defaults(func=cmd_add_peer)

    p_sstatus = sub.add_parser("server-status", help="show server status")
    p_sstatus.set_defaults(func=cmd_server_status)

    # client
    p_client = sub.add_parser("client-setup", help="configure this machine as a VPN client")
    p_client.add_argument("server_public_key")
    p_client.add_argument("endpoint", help="host:port")
    p_client.add_argument("vpn_ip", nargs="?", default=None)
    p_client.add_argument("mode", nargs="?", default="full", choices=["full", "split"])
    p_client.set_defaults(func=cmd_client_setup)

    sub.add_parser("connect", help="connect to the VPN").set_defaults(func=cmd_connect)
    sub.add_parser("disconnect", help="disconnect from the VPN").set_defaults(func=cmd_disconnect)
    sub.add_parser("status", help="show connection status").set_defaults(func=cmd_status)
    sub.add_parser("keys", help="generate or show client keys").set_defaults(func=cmd_keys)

    p_qr = sub.add_parser("client-qr", help="export the client config as a QR code")
    p_qr.add_argument("--output", default=None)
    p_qr.set_defaults(func=cmd_client_qr)

    sub.add_parser("cleanup", help="stop all VPN interfaces").set_defaults(func=cmd_cleanup)
    sub.add_parser("version", help="show version").set_defaults(func=cmd_version)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        settings = Settings.from_env()
        setup_logging("DEBUG" if args.verbose else settings.log_level)
        return args.func(args, settings)
    except VpnError as exc:
        print(f"[ERREUR] {exc}", file=sys.stderr)
        if exc.hint:
            print(exc.hint, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
