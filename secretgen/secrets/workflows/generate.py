"""Workflow that generates, encrypts and stores secrets in dependency order."""
import os
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from ..domains.crypto import Vault
from ..domains.errors import GeneratorFailure, UnknownTarget
from ..domains.git import stage_path
from ..domains.models import GenerationResult, Inventory, SecretEntry
from .collect import build_entries
from .schedule import order_entries

logger = logging.getLogger(__name__)

# Floor for dependencies whose file does not exist yet
MISSING_DEPENDENCY_MTIME = 1
MISSING_OUTPUT_MTIME = 0


@dataclass
class GenerateOptions:
    """Options of a generation run."""
    targets: List[str] = field(default_factory=list)
    force: bool = False
    add_to_git: bool = False


def _normalize(root: Path, path: str) -> str:
    return os.path.realpath(os.path.join(str(root), path))


def validate_targets(root: Path, entries: Iterable[SecretEntry], targets: Sequence[str]) -> None:
    """
    Check that every requested target is a known generated secret.

    Raises:
        UnknownTarget: For the first target that matches no entry
    """
    known = {_normalize(root, entry.storage_path) for entry in entries}
    for target in targets:
        if _normalize(root, target) not in known:
            raise UnknownTarget(f"Provided path matches no known secret: {target}")


def wants_secret(root: Path, entry: SecretEntry, targets: Sequence[str]) -> bool:
    """An empty target list selects every entry."""
    if not targets:
        return True
    path = _normalize(root, entry.storage_path)
    return any(path == _normalize(root, target) for target in targets)


def _mtime(path: Path, default: int) -> int:
    try:
        return int(os.stat(path).st_mtime)
    except OSError:
        return default


def needs_regeneration(root: Path, entry: SecretEntry, force: bool = False) -> bool:
    """
    Decide whether an entry must be generated.

    True if its file is missing, any dependency file is newer, or force is set.
    """
    own_file = Path(root) / entry.storage_path
    dep_mtimes = [MISSING_DEPENDENCY_MTIME] + [
        _mtime(Path(root) / dep_path, MISSING_DEPENDENCY_MTIME) for dep_path in entry.dependency_paths
    ]
    newest_dep = max(dep_mtimes)
    own_mtime = _mtime(own_file, MISSING_OUTPUT_MTIME)

    return not own_file.exists() or newest_dep > own_mtime or force


def run_generator(root: Path, script: Sequence[str]) -> bytes:
    """
    Run a generator command and return its standard output.

    Raises:
        GeneratorFailure: If the command cannot be started or exits non-zero
    """
    try:
        result = subprocess.run(list(script), cwd=str(root), stdout=subprocess.PIPE)
    except OSError as e:
        raise GeneratorFailure(f"Generator could not be started: {e}")

    if result.returncode != 0:
        raise GeneratorFailure(f"Generator exited with status {result.returncode}.")
    return result.stdout


def _format_definitions(entry: SecretEntry) -> str:
    return ", ".join(f"'{definition}'" for definition in entry.definitions)


def process_entries(
    root: Path,
    ordered: Sequence[SecretEntry],
    vault: Vault,
    options: GenerateOptions,
    runner: Callable[[Path, Sequence[str]], bytes] = run_generator,
    stager: Callable[[Path, str], None] = stage_path,
) -> List[GenerationResult]:
    """
    Generate every selected, stale entry strictly in the given order.

    Later generators may read files written by earlier ones.
    """
    results = []
    for entry in ordered:
        if not wants_secret(root, entry, options.targets):
            continue

        if not needs_regeneration(root, entry, options.force):
            print(f"Skipping existing secret {entry.storage_path} ({_format_definitions(entry)})")
            results.append(GenerationResult(entry.storage_path, "skipped", list(entry.definitions)))
            continue

        print(f"Generating secret {entry.storage_path} ({_format_definitions(entry)})")
        content = runner(root, entry.script)
        # Same plaintext a shell here-string of $(generator) would produce
        plaintext = content.rstrip(b"\n") + b"\n"

        vault.encrypt_to(Path(root) / entry.storage_path, plaintext)

        if options.add_to_git:
            stager(root, entry.storage_path)

        logger.info(f"Generated {entry.storage_path}")
        results.append(GenerationResult(entry.storage_path, "generated", list(entry.definitions)))
    return results


def plan_generation(inventory: Inventory) -> List[SecretEntry]:
    """Build, deduplicate and order all generated secrets of the inventory."""
    return order_entries(build_entries(inventory))


def generate_secrets(
    inventory: Inventory,
    vault: Vault,
    options: Optional[GenerateOptions] = None,
    runner: Callable[[Path, Sequence[str]], bytes] = run_generator,
    stager: Callable[[Path, str], None] = stage_path,
) -> List[GenerationResult]:
    """
    Generate all secrets of the inventory that are missing or stale.

    Behavior:
        - Validates requested targets before any generator runs
        - Skips secrets whose file is newer than all dependency files
        - Aborts on the first failure; secrets written so far are kept
    """
    options = options or GenerateOptions()
    ordered = plan_generation(inventory)
    validate_targets(inventory.root, ordered, options.targets)
    return process_entries(inventory.root, ordered, vault, options, runner=runner, stager=stager)
