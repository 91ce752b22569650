"""CLI entrypoint for secretgen."""
import sys
import argparse
import logging
from typing import List, Optional, Tuple

from .validators import reject_unknown_options, require_root

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports usage errors with exit code 1."""

    def error(self, message):
        print(f"Error: {message}", file=sys.stderr)
        print(f"\nRun '{self.prog} --help' for usage.", file=sys.stderr)
        sys.exit(1)


def cmd_version(args):
    """Show version information."""
    print(f"secretgen {VERSION}")


def cmd_generate(args):
    """Generate missing or outdated secrets."""
    from secretgen.secrets.domains.config_loader import load_config, load_inventory
    from secretgen.secrets.domains.crypto import open_vault
    from secretgen.secrets.workflows.generate import GenerateOptions, generate_secrets

    root = require_root()
    config = load_config(root)
    inventory = load_inventory(root, config)
    vault = open_vault(root, config.get("master_key"))

    options = GenerateOptions(
        targets=list(args.secrets),
        force=args.force_generate,
        add_to_git=args.add_to_git,
    )
    results = generate_secrets(inventory, vault, options)

    generated = sum(1 for result in results if result.status == "generated")
    logger.info(f"Generated {generated} of {len(results)} selected secrets")


def cmd_decrypt(args):
    """Print the plaintext of an encrypted secret."""
    from secretgen.secrets.domains.config_loader import load_config
    from secretgen.secrets.domains.crypto import open_vault

    root = require_root()
    config = load_config(root)
    vault = open_vault(root, config.get("master_key"))

    sys.stdout.buffer.write(vault.decrypt_file(args.file))
    sys.stdout.flush()


def cmd_list(args):
    """Show generated secrets in generation order."""
    from secretgen.secrets.domains.config_loader import load_inventory
    from secretgen.secrets.workflows.generate import plan_generation

    root = require_root()
    for entry in plan_generation(load_inventory(root)):
        print(f"{entry.storage_path} ({', '.join(entry.definitions)})")
        for dep_path in entry.dependency_paths:
            print(f"  depends on {dep_path}")


def cmd_init_key(args):
    """Create the master key file if it does not exist yet."""
    from secretgen.secrets.domains.config_loader import load_config
    from secretgen.secrets.domains.crypto import init_master_key, key_path_from_config

    root = require_root()
    settings = load_config(root).get("master_key", {})
    if settings.get("source", "file") != "file":
        print(f"Error: master key source is '{settings['source']}', nothing to create locally", file=sys.stderr)
        sys.exit(1)

    key_path = key_path_from_config(root, settings)
    existed = key_path.exists()
    init_master_key(key_path)
    if existed:
        print(f"Master key already exists at: {key_path}")
    else:
        print(f"Master key created at: {key_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="secretgen",
        description="secretgen - Creates fleet secrets using their generators",
        epilog="""
Exit codes:
  0 - Success
  1 - Any error (invalid option, unknown secret, generator failure, etc.)

Environment variables:
  SECRETGEN_MASTER_KEY - Base64 master key (overrides secretgen.yml)
  GCP_PROJECT - GCP project ID for a master key stored in Secret Manager

All commands except 'version' must run from the directory holding secretgen.yml.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress information to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # version command
    _version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of secretgen"
    )

    # generate command
    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate missing or outdated secrets",
        add_help=False,
        allow_abbrev=False,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Creates secrets using their generators.

A secret is generated when its file does not exist, when any secret it
depends on was modified after it, or when --force-generate is given.
Dependencies are always generated before the secrets that use them.

Without SECRET arguments every generated secret is considered.
        """
    )
    generate_parser.add_argument(
        "-h", "--help",
        action="store_true",
        help="Show help"
    )
    generate_parser.add_argument(
        "-f", "--force-generate",
        action="store_true",
        help="Force generating existing secrets"
    )
    generate_parser.add_argument(
        "-a", "--add-to-git",
        action="store_true",
        help="Add generated secrets to git via git add"
    )
    generate_parser.add_argument(
        "secrets",
        nargs="*",
        metavar="SECRET",
        help="Path of a secret file to generate"
    )

    # decrypt command
    decrypt_parser = subparsers.add_parser(
        "decrypt",
        help="Print the plaintext of a secret",
        description="Decrypt a generated secret with the master key and write it to stdout"
    )
    decrypt_parser.add_argument(
        "file",
        help="Path of the encrypted secret file"
    )

    # list command
    _list_parser = subparsers.add_parser(
        "list",
        help="Show generated secrets in generation order",
        description="List every generated secret, the hosts defining it and its dependencies"
    )

    # init-key command
    _init_key_parser = subparsers.add_parser(
        "init-key",
        help="Create the master key file",
        description="Create a random master key at master_key.path (default .secretgen/master.key)"
    )

    parser.set_defaults(generate_parser=generate_parser)
    return parser


def _split_separator(argv: List[str]) -> Tuple[List[str], List[str]]:
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1:]


def main(argv: Optional[List[str]] = None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Any error, including usage errors and help requested for generate
    """
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else list(argv)
    args, extras = parser.parse_known_args(argv)

    if args.command == "generate":
        # Everything after "--" is a target, even when it starts with a dash
        head, separated = _split_separator(argv)
        args, extras = parser.parse_known_args(head)
        # Targets split around options end up in extras
        reject_unknown_options([arg for arg in extras if arg.startswith("-")])
        args.secrets = list(args.secrets) + [arg for arg in extras if not arg.startswith("-")] + separated
        if args.help:
            args.generate_parser.print_help()
            sys.exit(1)
    else:
        reject_unknown_options(extras)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    # If no command provided, show help and exit with error code
    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Route to command handlers
    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "generate":
            cmd_generate(args)
        elif args.command == "decrypt":
            cmd_decrypt(args)
        elif args.command == "list":
            cmd_list(args)
        elif args.command == "init-key":
            cmd_init_key(args)
        else:
            parser.print_help()
            sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def generate_main():
    """Entrypoint of the generate-secrets script, same as 'secretgen generate'."""
    main(["generate"] + sys.argv[1:])


if __name__ == "__main__":
    main()
