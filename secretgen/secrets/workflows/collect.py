"""Collect generated secrets from all hosts and deduplicate them by storage path."""
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..domains.config_loader import relative_to_root
from ..domains.crypto import decrypt_command
from ..domains.errors import ConfigurationConflict, UnresolvableDependency
from ..domains.models import Inventory, ResolvedDependency, Secret, SecretEntry, SecretRef

logger = logging.getLogger(__name__)


def collect_generated_secrets(inventory: Inventory) -> Iterator[Tuple[str, str, Secret]]:
    """Yield (host, secret name, secret) for every secret that has a generator."""
    for host_name, host in inventory.hosts.items():
        for secret_name, secret in host.secrets.items():
            if secret.generator is not None:
                yield host_name, secret_name, secret


class OwnerIndex:
    """
    Index from (secret id, storage file) to the hosts declaring it.

    Built in a single pass over the inventory and read-only afterwards.
    """

    def __init__(self, inventory: Inventory):
        self._root = inventory.root
        self._owners: Dict[SecretRef, List[Tuple[str, str, Secret]]] = {}
        for host_name, host in inventory.hosts.items():
            for secret_name, secret in host.secrets.items():
                self._owners.setdefault(secret.ref, []).append((host_name, secret_name, secret))

    def find_owner(self, ref: SecretRef) -> Tuple[str, str, Secret]:
        """
        Find the host that declares the referenced secret.

        Returns:
            (host, secret name, secret) of the first matching declaration

        Raises:
            UnresolvableDependency: If no host declares it, or no declaration has a generator
        """
        matches = self._owners.get(ref, [])
        if not matches:
            raise UnresolvableDependency(
                f"No host declares a secret with id={ref.id} and rekeyFile={ref.rekey_file}, "
                f"but a generator depends on it."
            )

        if len(matches) > 1:
            hosts = ", ".join(f"{host}:{name}" for host, name, _ in matches)
            logger.warning(
                f"Multiple hosts provide a secret with rekeyFile={ref.rekey_file} ({hosts}), "
                f"which may have undesired side effects when used in secret generator dependencies."
            )

        if not any(secret.generator is not None for _, _, secret in matches):
            raise UnresolvableDependency(
                f"The given dependency with rekeyFile={ref.rekey_file} is a secret without a generator."
            )
        return matches[0]

    def resolve(self, ref: SecretRef) -> ResolvedDependency:
        host_name, _, secret = self.find_owner(ref)
        return ResolvedDependency(
            host=host_name,
            name=secret.id,
            file=relative_to_root(ref.rekey_file, self._root),
        )


def add_generated_secret_checked(
    entries: Dict[str, SecretEntry],
    host_name: str,
    secret_name: str,
    secret: Secret,
    index: OwnerIndex,
    root: Path,
    decrypt: Optional[str] = None,
) -> Dict[str, SecretEntry]:
    """
    Add a generated secret to the entries, keyed by its storage path.

    If the path is already present, the rendered script must be identical and
    the later declaration replaces the recorded secret and name.

    Raises:
        ConfigurationConflict: If another host renders a different script for the same path
    """
    storage_path = relative_to_root(secret.rekey_file, root)
    deps = [index.resolve(dep) for dep in secret.generator.dependencies]
    script = tuple(secret.generator.script(
        secret=secret,
        file=storage_path,
        name=secret_name,
        deps=deps,
        decrypt=decrypt if decrypt is not None else decrypt_command(),
    ))
    definition = f"{host_name}:{secret_name}"

    existing = entries.get(storage_path)
    if existing is None:
        entries[storage_path] = SecretEntry(
            storage_path=storage_path,
            secret=secret,
            secret_name=secret_name,
            script=script,
            dependency_paths=[relative_to_root(dep.rekey_file, root) for dep in secret.generator.dependencies],
            definitions=[definition],
        )
        return entries

    if existing.script != script:
        raise ConfigurationConflict(
            f"Generator definition of {secret_name} on {host_name} ({storage_path}) differs "
            f"from definitions on other hosts: {','.join(existing.definitions)}"
        )
    existing.secret = secret
    existing.secret_name = secret_name
    existing.definitions.append(definition)
    return entries


def build_entries(inventory: Inventory, decrypt: Optional[str] = None) -> Dict[str, SecretEntry]:
    """
    Collect all secrets that have generators across all hosts.

    Deduplicates secrets if the generator is the same, otherwise raises.
    """
    index = OwnerIndex(inventory)
    entries: Dict[str, SecretEntry] = {}
    for host_name, secret_name, secret in collect_generated_secrets(inventory):
        add_generated_secret_checked(entries, host_name, secret_name, secret, index, inventory.root, decrypt)
    logger.info(f"Collected {len(entries)} generated secrets from {len(inventory.hosts)} hosts")
    return entries
