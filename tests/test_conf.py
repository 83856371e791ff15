# tests/test_conf.py
import stat
from datetime import datetime, timezone

from simplevpn.conf import parse_conf, render_conf, render_peer_section, write_conf
from simplevpn.models import Identity, InterfaceConfig, Peer, Role

WHEN = datetime(2026, 10, 18, 8, 50, tzinfo=timezone.utc)


def _server_config():
    return InterfaceConfig(
        role=Role.SERVER,
        identity=Identity(private_key="SERVERPRIV=", public_key="SERVERPUB="),
        address="10.0.0.1/24",
        listen_port=51820,
        post_up="iptables -t nat -A POSTROUTING -s 10.0.0.0/24 -o eth0 -j MASQUERADE",
        post_down="iptables -t nat -D POSTROUTING -s 10.0.0.0/24 -o eth0 -j MASQUERADE",
        peers=[
            Peer(public_key="P1=", allowed_ips=["10.0.0.2/32"], label="Client VPN IP: 10.0.0.2"),
            Peer(public_key="P2=", allowed_ips=["10.0.0.3/32", "fd00::3/128"]),
        ],
    )


def test_render_starts_with_provenance_header():
    text = render_conf(_server_config(), generated_at=WHEN)
    lines = text.splitlines()
    assert lines[0].startswith("# ===")
    assert lines[1] == "# WireGuard Server Configuration"
    assert lines[2] == "# Generated by simple-vpn on 2026-10-18T08:50:00+00:00"


def test_render_is_deterministic_for_a_timestamp():
    assert render_conf(_server_config(), generated_at=WHEN) == render_conf(_server_config(), generated_at=WHEN)


def test_render_server_sections():
    text = render_conf(_server_config(), generated_at=WHEN)

    assert "[Interface]\nPrivateKey = SERVERPRIV=\nAddress = 10.0.0.1/24\nListenPort = 51820\n" in text
    assert "PostUp = iptables -t nat -A POSTROUTING" in text
    assert text.count("\n[Peer]\n") == 2
    assert "AllowedIPs = 10.0.0.3/32, fd00::3/128" in text
    assert text.index("PublicKey = P1=") < text.index("PublicKey = P2=")
    assert "DNS" not in text


def test_peer_section_layout():
    peer = Peer(
        public_key="SRV=",
        allowed_ips=["0.0.0.0/0", "::/0"],
        label="VPN server",
        endpoint="198.51.100.4:51820",
        persistent_keepalive=25,
    )
    assert render_peer_section(peer) == (
        "[Peer]\n"
        "# VPN server\n"
        "PublicKey = SRV=\n"
        "Endpoint = 198.51.100.4:51820\n"
        "AllowedIPs = 0.0.0.0/0, ::/0\n"
        "PersistentKeepalive = 25\n"
    )


def test_label_cannot_break_out_of_comment():
    peer = Peer(public_key="K=", allowed_ips=["10.0.0.9/32"], label="evil\n[Interface]\nPrivateKey = x")
    section = render_peer_section(peer)
    assert section.count("\n[") == 0
    assert section.splitlines()[1] == "# evil [Interface] PrivateKey = x"


def test_round_trip_preserves_interface_and_peers():
    original = _server_config()
    parsed = parse_conf(render_conf(original, generated_at=WHEN))

    assert parsed.role is Role.SERVER
    assert parsed.identity.private_key == "SERVERPRIV="
    assert parsed.identity.public_key is None
    assert parsed.address == original.address
    assert parsed.listen_port == original.listen_port
    assert parsed.post_up == original.post_up
    assert parsed.post_down == original.post_down
    assert [(p.public_key, p.allowed_ips) for p in parsed.peers] == [
        (p.public_key, p.allowed_ips) for p in original.peers
    ]
    assert parsed.peers[0].label == "Client VPN IP: 10.0.0.2"
    assert parsed.peers[1].label is None


def test_round_trip_client():
    client = InterfaceConfig(
        role=Role.CLIENT,
        identity=Identity(private_key="C=", public_key="CP="),
        address="10.0.0.2/24",
        dns=["1.1.1.1"],
        peers=[Peer("S=", ["0.0.0.0/0", "::/0"], "VPN server", "vpn.example.com:51820", 25)],
    )
    parsed = parse_conf(render_conf(client, generated_at=WHEN))

    assert parsed.role is Role.CLIENT
    assert parsed.dns == ["1.1.1.1"]
    assert parsed.listen_port is None
    assert parsed.peers == client.peers


def test_write_conf_is_owner_only(tmp_path):
    path = tmp_path / "etc" / "wireguard" / "wg0.conf"
    write_conf(path, render_conf(_server_config(), generated_at=WHEN))

    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert stat.S_IMODE(path.parent.stat().st_mode) == 0o700


def test_server_without_peers_has_no_peer_section():
    config = _server_config()
    config.peers = []
    text = render_conf(config, generated_at=WHEN)

    assert "[Peer]" not in text
    assert parse_conf(text).peers == []


def test_zero_keepalive_is_still_written():
    peer = Peer(public_key="SRV=", allowed_ips=["10.0.0.0/24"], persistent_keepalive=0)
    assert render_peer_section(peer).endswith("PersistentKeepalive = 0\n")
