"""Shared fixtures for secretgen tests."""
import base64
import sys
from pathlib import Path

import pytest
import yaml

from secretgen.secrets.domains.crypto import MASTER_KEY_ENV, Vault
from secretgen.secrets.domains.models import Generator, Host, Inventory, Secret

MASTER_KEY = bytes(range(32))
PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def echo_script(value):
    """Script factory whose command prints a fixed value."""
    def script(**kwargs):
        return [sys.executable, "-c", f"print({value!r})"]
    return script


def make_secret(root, file, generator_script=None, dependencies=(), secret_id=None):
    """Build a secret stored below root; secret_id defaults to the file stem."""
    rekey_file = (Path(root) / file).resolve()
    generator = None
    if generator_script is not None:
        generator = Generator(script=generator_script, dependencies=tuple(dep.ref for dep in dependencies))
    return Secret(id=secret_id or rekey_file.stem, rekey_file=rekey_file, generator=generator)


def make_inventory(root, hosts):
    """Build an inventory from {host: {secret name: Secret}}."""
    inventory = Inventory(root=Path(root).resolve())
    for host_name, secrets in hosts.items():
        inventory.hosts[host_name] = Host(name=host_name, secrets=dict(secrets))
    return inventory


@pytest.fixture
def root(tmp_path):
    """Configuration root with an empty secretgen.yml marker."""
    config_root = tmp_path / "flake"
    config_root.mkdir()
    (config_root / "secretgen.yml").write_text(yaml.safe_dump({"hosts": {}}))
    return config_root.resolve()


@pytest.fixture
def vault():
    return Vault(MASTER_KEY)


@pytest.fixture
def master_key_env(monkeypatch):
    """Expose the test master key to this process and to generator subprocesses."""
    monkeypatch.setenv(MASTER_KEY_ENV, base64.b64encode(MASTER_KEY).decode())
    return MASTER_KEY


@pytest.fixture
def importable_package(monkeypatch):
    """Make 'python -m secretgen.cli.main' work in subprocesses without installation."""
    monkeypatch.setenv("PYTHONPATH", str(PACKAGE_ROOT))
    return PACKAGE_ROOT


@pytest.fixture
def write_config(root):
    """Write a secretgen.yml into the root from a dict."""
    def write(config):
        (root / "secretgen.yml").write_text(yaml.safe_dump(config, sort_keys=False))
        return root / "secretgen.yml"
    return write
