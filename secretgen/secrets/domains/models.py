"""Domain models for secret generation."""
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class SecretRef:
    """Reference to another secret by identity and storage file, not yet bound to a host."""
    id: str
    rekey_file: Path


@dataclass(frozen=True)
class Generator:
    """Script factory plus the secrets it depends on.

    ``script`` is called with the keyword arguments ``secret``, ``file``,
    ``name``, ``deps`` and ``decrypt`` and returns the argument vector of a
    command whose standard output is the secret's plaintext.
    """
    script: Callable[..., Sequence[str]]
    dependencies: Tuple[SecretRef, ...] = ()


@dataclass(frozen=True)
class Secret:
    """A secret declared on a host."""
    id: str
    rekey_file: Path
    generator: Optional[Generator] = None

    @property
    def ref(self) -> SecretRef:
        return SecretRef(id=self.id, rekey_file=self.rekey_file)


@dataclass
class Host:
    """A host and its declared secrets, keyed by logical name."""
    name: str
    secrets: Dict[str, Secret] = field(default_factory=dict)


@dataclass
class Inventory:
    """All hosts of the fleet, rooted at the configuration directory."""
    root: Path
    hosts: Dict[str, Host] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedDependency:
    """A dependency annotated with the host that owns it."""
    host: str
    name: str
    file: str

    @property
    def quoted(self) -> str:
        return shlex.quote(self.file)


@dataclass
class SecretEntry:
    """Deduplicated generated secret, keyed by its storage path."""
    storage_path: str
    secret: Secret
    secret_name: str
    script: Tuple[str, ...]
    dependency_paths: List[str] = field(default_factory=list)
    definitions: List[str] = field(default_factory=list)


@dataclass
class GenerationResult:
    """Outcome of processing one entry."""
    storage_path: str
    status: str  # "generated" or "skipped"
    definitions: List[str]
