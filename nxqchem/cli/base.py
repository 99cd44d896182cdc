"""
Command groups of the `nxqchem` entry point.

    nxqchem <group> <command> [--config_key value ...]

A group is a CLICommand subclass under nxqchem.cli; its commands are the
Script subclasses defined in nxqchem.scripts.<group>.<command>. Flags
come from the script's config section.
"""

import importlib
import inspect
import pkgutil
from functools import lru_cache

import nxqchem.scripts
from nxqchem.scripts.base import Script


def iter_defined_subclasses(package, base):
    """Yield (module name, class) for every subclass of base defined in package's modules."""
    for _, modname, _ in pkgutil.walk_packages(package.__path__, package.__name__ + "."):
        module = importlib.import_module(modname)
        for _, obj in inspect.getmembers(module, inspect.isclass):
            # imported names belong to the module that defines them
            if issubclass(obj, base) and obj is not base and obj.__module__ == modname:
                yield modname, obj


@lru_cache(maxsize=None)
def scripts_by_group():
    """{group: [(command, Script subclass), ...]} for nxqchem.scripts.<group>.<command>."""
    groups = {}
    for modname, script_cls in iter_defined_subclasses(nxqchem.scripts, Script):
        parts = modname.split(".")
        if len(parts) < 4:
            # nxqchem.scripts.base holds abstract bases only
            continue
        groups.setdefault(parts[-2], []).append((parts[-1], script_cls))
    return groups


class CLICommand:
    """
    One top-level group, e.g. `nxqchem nx ...`. Subclasses set `name`.
    """

    name = None

    def register(self, top_subparsers):
        parser = top_subparsers.add_parser(self.name, help=inspect.getdoc(self))
        subparsers = parser.add_subparsers(dest=f"{self.name}_cmd")
        for command, script_cls in scripts_by_group().get(self.name, []):
            self.add_script(subparsers, command, script_cls)
        return parser

    def add_script(self, subparsers, command, script_cls):
        p = subparsers.add_parser(command, help=inspect.getdoc(script_cls))
        cfg_class = script_cls.config
        if cfg_class is not None:
            cfg_class.add_to_argparse(p)
        script = script_cls()
        p.set_defaults(func=lambda args: self.run_script(script, cfg_class, args))
        return p

    @staticmethod
    def run_script(script, cfg_class, args):
        """Config section + CLI overrides (validated), then the script."""
        cfg = cfg_class().apply_override(vars(args)) if cfg_class is not None else None
        return script.run(cfg)
