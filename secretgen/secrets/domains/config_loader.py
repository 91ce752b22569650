"""Configuration loader for secretgen.

The configuration root is the directory holding ``secretgen.yml``. Every
command is run from there, and all secret files are declared relative to it.
"""
import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import yaml

from .errors import ConfigError, MissingRootMarker
from .generators import build_script_factory
from .models import Generator, Host, Inventory, Secret, SecretRef

logger = logging.getLogger(__name__)

ROOT_MARKER = "secretgen.yml"


def find_root(cwd: Optional[Path] = None) -> Path:
    """
    Return the configuration root, which must be the current directory.

    Raises:
        MissingRootMarker: If the marker file is not present
    """
    root = Path(cwd or os.getcwd()).resolve()
    if not (root / ROOT_MARKER).is_file():
        raise MissingRootMarker(
            f"Please execute this command from your configuration root directory "
            f"(no {ROOT_MARKER} in {root})."
        )
    return root


def relative_to_root(path: Path, root: Path) -> str:
    """
    Render a secret file as a './'-prefixed path relative to the root.

    Raises:
        ConfigError: If the file does not live below the root
    """
    file_str = os.path.abspath(str(path))
    root_str = os.path.abspath(str(root))
    if not file_str.startswith(root_str.rstrip(os.sep) + os.sep):
        raise ConfigError(
            f"Cannot generate {file_str} as it isn't a direct subpath of the "
            f"configuration root {root_str}, meaning its true origin cannot be determined!"
        )
    return "./" + Path(os.path.relpath(file_str, root_str)).as_posix()


def load_config(root: Path) -> Dict[str, Any]:
    """
    Load and validate the configuration file from the root.

    Returns:
        Dict containing configuration with keys:
        - hosts: mapping of host name to its ``secrets`` section
        - master_key: optional master key settings

    Raises:
        ConfigError: If the file is unreadable, empty, or misses required sections
    """
    config_path = Path(root) / ROOT_MARKER

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")

    if not isinstance(config, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping at the top level")

    if 'hosts' not in config or not isinstance(config['hosts'], dict):
        raise ConfigError(
            f"Missing 'hosts' section in config at {config_path}\n"
            f"Required format:\n"
            f"hosts:\n"
            f"  my-host:\n"
            f"    secrets:\n"
            f"      my-secret:\n"
            f"        file: secrets/my-secret.age"
        )

    master_key = config.get('master_key', {})
    if not isinstance(master_key, dict):
        raise ConfigError("'master_key' must be a mapping")

    logger.info(f"Configuration loaded successfully from {config_path}")
    return config


def _declared_secrets(root: Path, hosts: Dict[str, Any]) -> Dict[Tuple[str, str], Tuple[Secret, Dict[str, Any]]]:
    declared = {}
    for host_name, host_section in hosts.items():
        host_section = host_section or {}
        secrets = host_section.get('secrets', {}) if isinstance(host_section, dict) else None
        if not isinstance(secrets, dict):
            raise ConfigError(f"'hosts.{host_name}.secrets' must be a mapping of secret names")

        for secret_name, raw in secrets.items():
            if not isinstance(raw, dict) or 'file' not in raw:
                raise ConfigError(
                    f"Missing 'file' for secret '{secret_name}' on host '{host_name}'\n"
                    f"Required format:\n"
                    f"{secret_name}:\n"
                    f"  file: secrets/{secret_name}.age"
                )
            rekey_file = (root / str(raw['file'])).resolve()
            # Must live below the root
            relative_to_root(rekey_file, root)
            secret = Secret(id=str(raw.get('id', secret_name)), rekey_file=rekey_file)
            declared[(str(host_name), str(secret_name))] = (secret, raw)
    return declared


def _dependency_refs(
    host_name: str,
    secret_name: str,
    raw_deps: List[Any],
    declared: Dict[Tuple[str, str], Tuple[Secret, Dict[str, Any]]],
) -> Tuple[SecretRef, ...]:
    refs = []
    for dep in raw_deps:
        dep = str(dep)
        dep_host, _, dep_name = dep.rpartition(":")
        key = (dep_host or host_name, dep_name)
        if key not in declared:
            raise ConfigError(
                f"Generator of '{secret_name}' on host '{host_name}' depends on "
                f"unknown secret '{dep}' (use 'name' for the same host or 'host:name')"
            )
        refs.append(declared[key][0].ref)
    return tuple(refs)


def load_inventory(root: Path, config: Optional[Dict[str, Any]] = None) -> Inventory:
    """
    Build the fleet inventory from the configuration file.

    Hosts and secrets keep the order in which they are declared.
    """
    root = Path(root).resolve()
    if config is None:
        config = load_config(root)

    declared = _declared_secrets(root, config['hosts'])
    inventory = Inventory(root=root)
    for host_name in config['hosts']:
        inventory.hosts[str(host_name)] = Host(name=str(host_name))

    for (host_name, secret_name), (secret, raw) in declared.items():
        host = inventory.hosts[host_name]

        spec = raw.get('generator')
        if spec is not None:
            if not isinstance(spec, dict):
                raise ConfigError(f"'generator' of '{secret_name}' on host '{host_name}' must be a mapping")
            raw_deps = spec.get('dependencies', [])
            if not isinstance(raw_deps, list):
                raise ConfigError(f"'dependencies' of '{secret_name}' on host '{host_name}' must be a list")
            secret = Secret(
                id=secret.id,
                rekey_file=secret.rekey_file,
                generator=Generator(
                    script=build_script_factory(secret_name, spec),
                    dependencies=_dependency_refs(host_name, secret_name, raw_deps, declared),
                ),
            )
        host.secrets[secret_name] = secret

    logger.debug(f"Loaded {len(inventory.hosts)} hosts from {root}")
    return inventory
