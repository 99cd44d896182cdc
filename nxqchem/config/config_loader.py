# nxqchem/config/config_loader.py
"""
config.toml sections as attribute objects.

Each script owns one section. A section may name a [defaults.<key>]
table with `use_defaults`; its own keys win. The value type in the TOML
file fixes the type of the CLI flag and of any override.
"""

import tomllib
from pathlib import Path

from nxqchem.util.errors import ConfigError
from nxqchem.util.phase import PHASE_CORRECTORS

TRUE_WORDS = ("1", "true", "yes", "on")
FALSE_WORDS = ("0", "false", "no", "off")


def parse_bool(text):
    word = str(text).strip().lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    raise ValueError(f"'{text}' is not a boolean (use one of {TRUE_WORDS + FALSE_WORDS})")


class ConfigBase:
    _cache = None   # parsed config.toml, shared by all sections

    section_name = None   # Must be defined by subclass

    # key -> allowed string values
    choices = {}
    # int keys that must be >= 1
    positive = ()
    # int keys that must be >= 0 (0 = "not given")
    non_negative = ()

    @classmethod
    def load_all(cls):
        if ConfigBase._cache is None:
            config_path = Path(__file__).resolve().parent / "config.toml"
            with open(config_path, "rb") as f:
                ConfigBase._cache = tomllib.load(f)
        return ConfigBase._cache

    @classmethod
    def section_dict(cls):
        all_data = cls.load_all()
        data = dict(all_data.get(cls.section_name, {}))

        parent_key = data.pop("use_defaults", None)
        if parent_key:
            parent_data = all_data.get("defaults", {}).get(parent_key, {})
            data = {**parent_data, **data}
        return data

    def __init__(self):
        for k, v in self.section_dict().items():
            setattr(self, k, v)

    def apply_override(self, overrides: dict):
        """Take CLI values (None means not given) converted to the TOML type, then validate."""
        for key, val in overrides.items():
            if val is None or val == "" or not hasattr(self, key):
                continue

            current = getattr(self, key)
            try:
                if isinstance(current, bool):
                    val = val if isinstance(val, bool) else parse_bool(val)
                elif isinstance(current, int):
                    val = int(val)
            except ValueError as exc:
                raise ConfigError(f"--{key}: {exc}") from None
            setattr(self, key, val)

        self.validate()
        return self

    def validate(self):
        for key, allowed in self.choices.items():
            val = getattr(self, key, None)
            if val not in allowed:
                raise ConfigError(
                    f"[{self.section_name}] {key} = '{val}' is not one of {sorted(allowed)}"
                )
        for key in self.positive:
            if getattr(self, key) < 1:
                raise ConfigError(f"[{self.section_name}] {key} must be >= 1, got {getattr(self, key)}")
        for key in self.non_negative:
            if getattr(self, key) < 0:
                raise ConfigError(f"[{self.section_name}] {key} must be >= 0, got {getattr(self, key)}")

    @classmethod
    def add_to_argparse(cls, parser):
        """One --flag per key of the section; an empty string default makes the flag required."""
        for key, default in cls.section_dict().items():
            kwargs = {"default": None, "required": default == ""}
            if isinstance(default, bool):
                kwargs.update(type=parse_bool, metavar="BOOL",
                              help=f"(default: {str(default).lower()})")
            elif isinstance(default, int):
                kwargs.update(type=int, help=f"(default: {default})")
            elif key in cls.choices:
                kwargs.update(choices=sorted(cls.choices[key]), help=f"(default: '{default}')")
            else:
                kwargs.update(help=f"(default: '{default}')")
            parser.add_argument(f"--{key}", **kwargs)
        return parser


# ---- Sections ----

class QchemEnvConfig(ConfigBase):
    section_name = "qchem_env"

class RunStepConfig(ConfigBase):
    section_name = "run_step"
    choices = {"phase_method": PHASE_CORRECTORS}
    positive = ("block_offset", "nthreads")

class ParseOutputConfig(ConfigBase):
    section_name = "parse_output"
    choices = {"phase_method": PHASE_CORRECTORS}
    positive = ("block_offset",)
    non_negative = ("nat", "nstat", "nstatdyn")
