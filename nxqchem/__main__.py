# nxqchem/__main__.py

import argparse
import sys

import nxqchem
import nxqchem.cli
from nxqchem.cli.base import CLICommand, iter_defined_subclasses
from nxqchem.util.errors import InterfaceError


def build_parser():
    parser = argparse.ArgumentParser(
        prog="nxqchem",
        description="Q-Chem EOM-CC energies, gradients and couplings for Newton-X.",
    )
    parser.add_argument("--version", action="version", version=nxqchem.__version__)
    subparsers = parser.add_subparsers(dest="command")
    for _, group_cls in iter_defined_subclasses(nxqchem.cli, CLICommand):
        group_cls().register(subparsers)
    return parser


def main(argv=None):
    """Exit status: 0 on success, 1 when the timestep failed (no result file was written)."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        args.func(args)
    except InterfaceError as exc:
        print(f"[nxqchem] ERROR: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
