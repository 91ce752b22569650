"""Built-in generator script factories.

Every factory returns the argument vector of a command that prints the new
secret on standard output. Factories are plain callables, so the same
factory declared on several hosts renders the same script.
"""
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

from .errors import ConfigError

DEFAULT_LENGTHS = {
    "alnum": 48,
    "hex": 24,
    "base64": 32,
    "dhparams": 4096,
}

_PYTHON_SNIPPETS = {
    "alnum": (
        "import secrets, string; "
        "alphabet = string.ascii_letters + string.digits; "
        "print(''.join(secrets.choice(alphabet) for _ in range({length})))"
    ),
    "hex": "import secrets; print(secrets.token_hex({length}))",
    "base64": "import base64, secrets; print(base64.b64encode(secrets.token_bytes({length})).decode())",
}


@dataclass(frozen=True)
class RandomGenerator:
    """Random secret produced by the running interpreter."""
    kind: str
    length: int

    def __call__(self, **kwargs) -> List[str]:
        return [sys.executable, "-c", _PYTHON_SNIPPETS[self.kind].format(length=self.length)]


@dataclass(frozen=True)
class DhparamsGenerator:
    bits: int = 4096

    def __call__(self, **kwargs) -> List[str]:
        return ["openssl", "dhparam", str(self.bits)]


@dataclass(frozen=True)
class CommandTemplate:
    """User supplied argument vector.

    Each argument is formatted with ``file``, ``name``, ``id``, ``deps`` and
    ``decrypt``; for example ``{deps[0].quoted}`` expands to the quoted
    storage path of the first dependency. Literal braces must be doubled.
    """
    argv: Tuple[str, ...]

    def __call__(self, *, secret, file, name, deps, decrypt, **kwargs) -> List[str]:
        context: Dict[str, Any] = {
            "file": file,
            "name": name,
            "id": secret.id,
            "deps": deps,
            "decrypt": decrypt,
        }
        try:
            return [arg.format(**context) for arg in self.argv]
        except (KeyError, IndexError, AttributeError, ValueError) as e:
            raise ConfigError(f"Cannot render generator command for {file}: {e!r} in {list(self.argv)}")


def build_script_factory(name: str, spec: Dict[str, Any]) -> Callable[..., Sequence[str]]:
    """Turn the ``generator`` section of a secret into a script factory."""
    kind = spec.get("type")
    if kind is None and "command" in spec:
        kind = "command"

    if kind == "command":
        command = spec.get("command")
        if not isinstance(command, list) or not command or not all(isinstance(a, str) for a in command):
            raise ConfigError(
                f"Generator of '{name}' needs 'command' as a non-empty list of strings\n"
                f"Required format:\n"
                f"generator:\n"
                f"  command: [\"sh\", \"-c\", \"...\"]"
            )
        return CommandTemplate(argv=tuple(command))

    if kind not in DEFAULT_LENGTHS:
        raise ConfigError(
            f"Unsupported generator type for '{name}': {kind}\n"
            f"Supported types: {', '.join(sorted(DEFAULT_LENGTHS))}, command"
        )

    length = spec.get("length", DEFAULT_LENGTHS[kind])
    if not isinstance(length, int) or isinstance(length, bool) or length <= 0:
        raise ConfigError(f"Generator 'length' of '{name}' must be a positive integer, got: {length!r}")

    if kind == "dhparams":
        return DhparamsGenerator(bits=length)
    return RandomGenerator(kind=kind, length=length)
