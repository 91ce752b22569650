"""Input validation for CLI arguments."""
import sys
from pathlib import Path
from typing import List

from secretgen.secrets.domains.config_loader import find_root
from secretgen.secrets.domains.errors import MissingRootMarker


def require_root() -> Path:
    """
    Return the configuration root, which must be the current directory.

    Raises:
        SystemExit with code 1 if the marker file is missing
    """
    try:
        return find_root()
    except MissingRootMarker as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def reject_unknown_options(extras: List[str]) -> None:
    """
    Fail on arguments the parser did not recognize.

    Raises:
        SystemExit with code 1 naming the first invalid option
    """
    for arg in extras:
        if arg.startswith("-"):
            print(f"Error: Invalid option '{arg}'", file=sys.stderr)
        else:
            print(f"Error: Unexpected argument '{arg}'", file=sys.stderr)
        print("\nRun 'secretgen <command> --help' for usage.", file=sys.stderr)
        sys.exit(1)
