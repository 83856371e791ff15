# tests/test_init.py
import dataclasses
import stat

import pytest

from simplevpn import init_client as init_client_mod
from simplevpn import init_server as init_server_mod
from simplevpn.conf import parse_conf
from simplevpn.connection import Transition
from simplevpn.environment import NetworkEnvironment
from simplevpn.errors import InsufficientPrivilege, InvalidArguments, InvalidEndpoint, TunnelEngineError
from simplevpn.init_client import client_keys, init_client
from simplevpn.init_server import init_server
from simplevpn.models import Role, TunnelMode

LINUX_ROUTE = "default via 192.168.1.1 dev enp3s0 proto dhcp metric 100\n"


@pytest.fixture(autouse=True)
def preflight_ok(monkeypatch):
    monkeypatch.delenv("SUDO_USER", raising=False)
    monkeypatch.setattr(init_server_mod, "require_root", lambda action: None)
    monkeypatch.setattr(init_server_mod, "require_tools", lambda *tools: None)
    monkeypatch.setattr(init_client_mod, "require_tools", lambda *tools: None)


@pytest.fixture()
def linux_env(settings, make_runner):
    return NetworkEnvironment(settings, make_runner({"ip route show default": (0, LINUX_ROUTE, "")}), system="Linux")


def test_server_setup(settings, wg, linux_env, runner):
    summary = init_server(settings, wg, linux_env, runner=runner)

    assert summary.transition is Transition.CONNECTED
    assert summary.public_key.startswith("pub-")
    assert summary.config_path == settings.server_conf_path
    assert stat.S_IMODE(summary.config_path.stat().st_mode) == 0o600

    conf = parse_conf(summary.config_path.read_text())
    assert conf.role is Role.SERVER
    assert conf.address == "10.0.0.1/24"
    assert conf.listen_port == 51820
    assert conf.peers == []
    assert "-s 10.0.0.0/24 -o enp3s0 -j MASQUERADE" in conf.post_up

    assert runner.calls == [["sysctl", "-w", "net.ipv4.ip_forward=1"]]
    assert "net.ipv4.ip_forward=1" in settings.sysctl_conf.read_text()
    assert wg.events == ["up wg0"]


def test_server_setup_twice_keeps_identity_and_restarts(settings, wg, linux_env, runner):
    first = init_server(settings, wg, linux_env, runner=runner)
    second = init_server(settings, wg, linux_env, runner=runner)

    assert second.public_key == first.public_key
    assert wg.genkey_calls == 1
    assert second.transition is Transition.RESTARTED
    assert settings.sysctl_conf.read_text().count("net.ipv4.ip_forward=1") == 1


def test_server_setup_requires_root(settings, wg, linux_env, monkeypatch):
    def deny(action):
        raise InsufficientPrivilege(f"{action} requires root privileges.")

    monkeypatch.setattr(init_server_mod, "require_root", deny)
    with pytest.raises(InsufficientPrivilege):
        init_server(settings, wg, linux_env)
    assert not settings.config_dir.exists()
    assert wg.events == []


def test_client_setup_full(settings, wg, linux_env):
    summary = init_client(settings, wg, linux_env, "SERVERPUB=", "203.0.113.1:51820")

    assert summary.mode is TunnelMode.FULL
    assert summary.address == "10.0.0.2/24"
    text = summary.config_path.read_text()
    conf = parse_conf(text)
    assert conf.role is Role.CLIENT
    assert conf.dns == ["1.1.1.1"]
    assert conf.listen_port is None
    peer = conf.peers[0]
    assert peer.public_key == "SERVERPUB="
    assert peer.endpoint == "203.0.113.1:51820"
    assert peer.allowed_ips == ["0.0.0.0/0", "::/0"]
    assert peer.persistent_keepalive == 25

    assert summary.installed_path == settings.wg_dir / "wg0.conf"
    assert summary.installed_path.read_text() == text
    assert wg.installed == [(summary.config_path, summary.installed_path)]


def test_client_setup_split_host_address_uses_configured_subnet(settings, wg, linux_env):
    summary = init_client(settings, wg, linux_env, "SERVERPUB=", "vpn.example.com:51820", "10.0.0.9", "split")

    conf = parse_conf(summary.config_path.read_text())
    assert conf.dns is None
    assert conf.peers[0].allowed_ips == ["10.0.0.0/24"]


@pytest.mark.parametrize("kwargs,exc", [
    ({"endpoint": "203.0.113.1"}, InvalidEndpoint),
    ({"endpoint": "203.0.113.1:99999"}, InvalidEndpoint),
    ({"address": "10.0.0.300/24"}, InvalidArguments),
    ({"mode": "half"}, InvalidArguments),
    ({"server_public_key": ""}, InvalidArguments),
])
def test_client_setup_invalid_arguments_write_nothing(settings, wg, linux_env, kwargs, exc):
    args = {"server_public_key": "SERVERPUB=", "endpoint": "203.0.113.1:51820"}
    args.update(kwargs)
    with pytest.raises(exc):
        init_client(settings, wg, linux_env, **args)

    assert not settings.config_dir.exists()
    assert not settings.wg_dir.exists()
    assert wg.genkey_calls == 0


def test_client_keys_are_stable(settings, wg, linux_env):
    first = client_keys(settings, wg, linux_env)
    second = client_keys(settings, wg, linux_env)
    assert first.public_key == second.public_key
    assert wg.genkey_calls == 1
    assert (settings.config_dir / "client_private.key").exists()


@pytest.mark.parametrize("address,subnet", [
    ("10.1.0.1/24", "10.1.0.0/24"),
    ("172.16.5.1/16", "172.16.0.0/16"),
    ("10.1.0.1/32", "10.0.0.0/24"),
])
def test_server_nat_follows_server_address(settings, wg, linux_env, runner, address, subnet):
    settings = dataclasses.replace(settings, server_address=address)
    summary = init_server(settings, wg, linux_env, runner=runner)

    conf = parse_conf(summary.config_path.read_text())
    assert conf.address == address
    assert f"-s {subnet} -o enp3s0 -j MASQUERADE" in conf.post_up
    assert f"-s {subnet} -o enp3s0 -j MASQUERADE" in conf.post_down


def test_server_setup_forwarding_failure_is_reported(settings, wg, linux_env, make_runner):
    refusing = make_runner({"sysctl": (255, "", "permission denied")})
    with pytest.raises(TunnelEngineError):
        init_server(settings, wg, linux_env, runner=refusing)
    assert wg.events == []
