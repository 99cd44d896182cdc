# nxqchem/config/__init__.py

from .config_loader import (
    ConfigBase,
    QchemEnvConfig,
    RunStepConfig,
    ParseOutputConfig,
)


def get_run_step_config():
    return RunStepConfig()

def get_parse_output_config():
    return ParseOutputConfig()

__all__ = [
    "ConfigBase",
    "QchemEnvConfig",
    "RunStepConfig",
    "ParseOutputConfig",
    "get_run_step_config",
    "get_parse_output_config",
]
