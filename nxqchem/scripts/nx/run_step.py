"""
run_step.py

One Newton-X timestep with Q-Chem EOM-CC: write the input for the current
geometry, run Q-Chem, extract energies, gradients and nonadiabatic
couplings, and hand them to Newton-X with a consistent coupling phase.

Usage (from the Newton-X TEMP directory):
    nxqchem nx run_step
    nxqchem nx run_step --nthreads 8 --phase_method escalar
"""

import os
from dataclasses import dataclass
from typing import Optional

import numpy as np

from nxqchem.config.config_loader import RunStepConfig
from nxqchem.scripts.base import QchemBaseScript
from nxqchem.util.errors import StructuralMismatchError
from nxqchem.util.file_system import qchem_nad_input, qchem_out_eom_nac
from nxqchem.util.log import StepLogger
from nxqchem.util.nx_io import (
    archive_output,
    load_status,
    read_geom,
    read_single_value,
    read_vectors,
    write_energy,
    write_gradients,
    write_vectors,
)
from nxqchem.util.phase import get_phase_corrector
from nxqchem.util.state_pair import iter_pairs
from nxqchem.util.unit import ENERGY

SEPARATOR = "-" * 50
XYZ_HEADER = "Atom          X               Y               Z"


@dataclass
class CouplingUpdate:
    previous: Optional[np.ndarray]   # nad_vectors of the previous step, None on the first
    parsed: np.ndarray
    aligned: np.ndarray


class RunStep(QchemBaseScript):
    """
    Run one Newton-X timestep with Q-Chem EOM-CC.
    """
    name = "run_step"
    config = RunStepConfig

    def run(self, cfg):
        workdir = cfg.workdir
        ctl = load_status(os.path.join(workdir, cfg.control))
        log = self.make_logger(ctl)

        log.debug(f"{self.name} has taken over")
        log.debug(f"running in {os.path.abspath(workdir)}")
        log.debug(f"Dynamics control: {ctl.summary()}")

        self.check_dynamics_type(workdir, log)

        # ======== Input ========
        log.debug("Reading current geometry.")
        geom = read_geom(os.path.join(workdir, cfg.geom))
        if geom.natom != ctl.nat:
            raise StructuralMismatchError(
                f"{cfg.geom} has {geom.natom} atoms but control.d says nat={ctl.nat}"
            )

        log.debug("Preparing input for Q-Chem.")
        inp = qchem_nad_input(os.path.join(workdir, cfg.template)).read_template()
        inp.generate_inp(os.path.join(workdir, cfg.qchem_inp), geom.symbols, geom.xyz, ctl.nstatdyn)

        # ======== Q-Chem ========
        log.debug("Executing Q-Chem.")
        self.run_qchem(cfg.qchem_inp, cfg.qchem_out, cfg.nthreads, cwd=workdir)

        out_file = os.path.join(workdir, cfg.qchem_out)
        dest = archive_output(out_file, os.path.join(workdir, cfg.archive_dir), ctl.t)
        log.debug(f"Archived current output to {dest}")

        # ======== Results ========
        results, update = self.read_results(cfg, ctl, out_file, log)
        self.write_results(cfg, ctl, results, update, log)
        return results

    @staticmethod
    def make_logger(ctl):
        return StepLogger("run_step", istep=ctl.istep, t=ctl.t, kt=ctl.kt, lvprt=ctl.lvprt)

    @staticmethod
    def check_dynamics_type(workdir, log):
        """JOB_AD selects adiabatic dynamics, which this interface does not handle."""
        log.debug("Checking type of dynamics.")
        has_ad = os.path.exists(os.path.join(workdir, "JOB_AD"))
        has_nad = os.path.exists(os.path.join(workdir, "JOB_NAD"))

        dyn_type = read_single_value(os.path.join(workdir, "type_of_dyn.out"), "2")
        adiabatic = has_ad and (not has_nad or dyn_type == "1")
        if adiabatic:
            raise StructuralMismatchError("The interface does not handle adiabatic dynamics (JOB_AD)")
        return "jnd"

    def read_results(self, cfg, ctl, out_file, log):
        """
        Parse the output and align the coupling phase.

        Every check that can fail runs here, before any result file is
        written. Returns (results, update); update is None on a second run.
        """
        log.debug(f"Reading energies, gradients and couplings from {out_file}.")
        out = qchem_out_eom_nac(
            out_file, nat=ctl.nat, nstat=ctl.nstat, nstatdyn=ctl.nstatdyn,
            block_offset=cfg.block_offset,
            skip_undefined_nac=cfg.skip_undefined_nac,
            log=log,
        )
        out.read_file()
        if not out.finished:
            log.warning(f"{out_file} does not end with the Q-Chem success message")
        results = out.results
        return results, self.align_couplings(cfg, ctl, results, log)

    def align_couplings(self, cfg, ctl, results, log):
        workdir = cfg.workdir
        log.debug("Treating couplings.")

        if read_single_value(os.path.join(workdir, "which_run_is_that")) == "second run":
            log.debug("Second run: couplings are not treated.")
            return None

        old = read_vectors(os.path.join(workdir, "nad_vectors"), results.npair, results.nat)
        new = results.couplings.copy()

        if old is None:
            log.debug("No previous coupling vectors: phase is not adjusted.")
            aligned = new.copy()
        else:
            log.debug(f"Fixing the coupling phase ({cfg.phase_method}).")
            corrector = get_phase_corrector(
                cfg.phase_method, workdir=workdir, lvprt=ctl.lvprt
            )
            aligned, signs = corrector.correct(new, old)
            flipped = [pair for pair, s in zip(iter_pairs(ctl.nstat), signs) if s < 0]
            if flipped:
                log.debug("Phase flipped for pairs " + ", ".join(f"{i}-{j}" for i, j in flipped))

        results.couplings = aligned
        return CouplingUpdate(previous=old, parsed=new, aligned=aligned)

    def write_results(self, cfg, ctl, results, update, log):
        """
        Newton-X files of the step:

            epot, oldepot, newepot   state energies
            grad, grad.all           gradient of nstatdyn / of every state
            oldh                     previous nad_vectors (zeros on the first step)
            newh                     this step's couplings as parsed
            nad_vectors              this step's couplings after phase alignment
        """
        workdir = cfg.workdir
        show = cfg.print_extracted

        log.debug("Writing Epot.")
        write_energy(results.energies, workdir)
        if show:
            self.print_energies(results, log)

        log.debug("Writing Gradients.")
        write_gradients(results.gradients, ctl.nstatdyn, workdir)
        if show:
            self.print_gradient(results, ctl.nstatdyn, log)

        if update is None:
            return
        log.debug("Writing couplings.")
        previous = update.previous if update.previous is not None else np.zeros_like(update.parsed)
        write_vectors(os.path.join(workdir, "oldh"), previous)
        write_vectors(os.path.join(workdir, "newh"), update.parsed)
        write_vectors(os.path.join(workdir, "nad_vectors"), update.aligned)
        if show:
            self.print_couplings(results, ctl.nstatdyn, log)

    # -------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------
    @staticmethod
    def print_energies(results, log):
        rel = ENERGY(results.energies - results.energies[0]).convert_to("ev")
        rows = [f"  State {i + 1}: {e:.10f}   dE = {de:8.4f} eV"
                for i, (e, de) in enumerate(zip(results.energies, rel))]
        log.table("State energies (a.u.):", rows)

    @staticmethod
    def print_gradient(results, nstatdyn, log):
        rows = [XYZ_HEADER, SEPARATOR]
        for ia, (x, y, z) in enumerate(results.gradient(nstatdyn)):
            rows.append(f"{ia + 1:<4d} {x:15.8f} {y:15.8f} {z:15.8f}")
        log.table(f"Gradient of state {nstatdyn} (a.u.):", rows)

    @staticmethod
    def print_couplings(results, nstatdyn, log):
        """Nonzero couplings that involve the propagated state."""
        rows = []
        for idx, (i, j) in enumerate(iter_pairs(results.nstat)):
            if nstatdyn not in (i, j):
                continue
            h = results.couplings[idx]
            if not np.any(h):
                continue
            rows.append(f"Coupling between state {j} and state {i}:")
            rows.append(XYZ_HEADER)
            for ia, (x, y, z) in enumerate(h):
                rows.append(f"{ia + 1:<4d} {x:15.8f} {y:15.8f} {z:15.8f}")
            rows.append(SEPARATOR)
        if rows:
            log.table("Non-adiabatic couplings (a.u.):", [SEPARATOR] + rows)
