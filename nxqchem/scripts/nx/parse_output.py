"""
parse_output.py

Extract energies, gradients and couplings from an existing Q-Chem output
and write the Newton-X files (epot, grad, grad.all, nad_vectors) without
running Q-Chem.

Usage:
    nxqchem nx parse_output --file qchem.out
    nxqchem nx parse_output --file 12.5.out --nat 6 --nstat 3 --nstatdyn 2
    nxqchem nx parse_output --workdir TEMP --file ../INFO_RESTART/qchem_outputs/12.5.out
"""

import os

from nxqchem.config.config_loader import ParseOutputConfig
from nxqchem.scripts.nx.run_step import RunStep
from nxqchem.util.errors import MissingInputError
from nxqchem.util.log import StepLogger
from nxqchem.util.nx_io import RunControl, load_status


class ParseOutput(RunStep):
    """
    Parse a Q-Chem EOM-CC output into Newton-X result files.
    """
    name = "parse_output"
    config = ParseOutputConfig

    @staticmethod
    def run_control(cfg):
        """control.d values, overridden by nonzero --nat/--nstat/--nstatdyn."""
        control = os.path.join(cfg.workdir, cfg.control)
        if os.path.exists(control):
            ctl = load_status(control)
        else:
            missing = [k for k in ("nat", "nstat", "nstatdyn") if not getattr(cfg, k)]
            if missing:
                raise MissingInputError(
                    f"No {control} found; pass --{' --'.join(missing)} explicitly"
                )
            ctl = RunControl(nat=cfg.nat, nstat=cfg.nstat, nstatdyn=cfg.nstatdyn)

        for key in ("nat", "nstat", "nstatdyn"):
            if getattr(cfg, key):
                setattr(ctl, key, getattr(cfg, key))
        return ctl

    @staticmethod
    def output_path(cfg):
        """--file, like --control, is taken relative to --workdir unless absolute."""
        return os.path.join(cfg.workdir, cfg.file)

    @staticmethod
    def make_logger(ctl):
        return StepLogger("parse_output", istep=ctl.istep, t=ctl.t, kt=ctl.kt, lvprt=ctl.lvprt)

    def run(self, cfg):
        ctl = self.run_control(cfg)
        log = self.make_logger(ctl)
        log.debug(f"Dynamics control: {ctl.summary()}")

        results, update = self.read_results(cfg, ctl, self.output_path(cfg), log)
        self.write_results(cfg, ctl, results, update, log)
        log.info(f"Wrote epot, grad, grad.all and nad_vectors to {os.path.abspath(cfg.workdir)}")
        return results
