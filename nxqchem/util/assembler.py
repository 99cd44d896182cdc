# nxqchem/util/assembler.py
"""
Fill the Newton-X result stores from the block scanner's event stream.

    energies   : (nstat,)            Hartree
    gradients  : (nstat, nat, 3)     Hartree/Bohr
    couplings  : (npair, nat, 3)     a.u., h_IJ with I > J

Entries the output does not report stay zero.
"""

import numpy as np

from .block_scanner import (
    BLOCK_OFFSET,
    BlockScanner,
    CouplingReport,
    EnergyReport,
    FinalGradientReport,
    GradientReport,
)
from .errors import StructuralMismatchError
from .state_pair import canonical, linear_index, npair


class EomResults:
    def __init__(self, nat, nstat):
        self.nat = nat
        self.nstat = nstat
        self.energies = np.zeros(nstat)
        self.gradients = np.zeros((nstat, nat, 3))
        self.couplings = np.zeros((npair(nstat), nat, 3))
        self.gradient_states = []
        self.coupling_pairs = []

    @property
    def npair(self):
        return npair(self.nstat)

    def gradient(self, state_id):
        return self.gradients[state_id - 1]

    def coupling(self, a, b):
        """<a|d/dR|b> for any ordered pair, using h_ab = -h_ba."""
        higher, lower, sign = canonical(a, b)
        return sign * self.couplings[linear_index(higher, lower)]

    def __repr__(self):
        return (f"<EomResults nat={self.nat} nstat={self.nstat} "
                f"gradients={self.gradient_states} couplings={self.coupling_pairs}>")


class QuantityAssembler:
    """
    Consume BlockScanner events and build an EomResults.

    Parameters
    ----------
    nat, nstat : int
        Atom and state counts of the run.
    nstatdyn : int
        Currently propagated state; receives the "Final gradient" of a
        single-state calculation.
    skip_undefined_nac : bool
        Skip a coupling block whose State A/B context is unknown instead
        of failing.
    log : StepLogger, optional
    """

    def __init__(self, nat, nstat, nstatdyn, skip_undefined_nac=True, log=None):
        if nstat < 1:
            raise StructuralMismatchError(f"nstat must be positive, got {nstat}")
        if not 1 <= nstatdyn <= nstat:
            raise StructuralMismatchError(f"nstatdyn={nstatdyn} is outside [1, {nstat}]")
        self.nat = nat
        self.nstat = nstat
        self.nstatdyn = nstatdyn
        self.skip_undefined_nac = skip_undefined_nac
        self.log = log

    def _check_state(self, state_id, what, line_no):
        if not 1 <= state_id <= self.nstat:
            raise StructuralMismatchError(
                f"{what} at line {line_no + 1} refers to state {state_id}, "
                f"but only {self.nstat} states are propagated"
            )

    def assemble(self, events):
        res = EomResults(self.nat, self.nstat)
        n_energy = 0
        n_gradient = 0
        final_grad = None

        for ev in events:
            if isinstance(ev, EnergyReport):
                if n_energy < self.nstat:
                    res.energies[n_energy] = ev.value
                n_energy += 1

            elif isinstance(ev, GradientReport):
                state_id = ev.state_id
                if state_id is None:
                    slot_state = "A" if ev.slot == "I" else "B"
                    raise StructuralMismatchError(
                        f"Found G_{ev.slot} gradient block at line {ev.line_no + 1} "
                        f"but State {slot_state} is undefined"
                    )
                self._check_state(state_id, f"G_{ev.slot} gradient block", ev.line_no)
                res.gradients[state_id - 1] = ev.rows
                if state_id not in res.gradient_states:
                    res.gradient_states.append(state_id)
                n_gradient += 1

            elif isinstance(ev, CouplingReport):
                if not ev.context.complete:
                    msg = (f"Found NAC block at line {ev.line_no + 1} but states are undefined "
                           f"(A={ev.context.state_a}, B={ev.context.state_b})")
                    if not self.skip_undefined_nac:
                        raise StructuralMismatchError(msg)
                    if self.log is not None:
                        self.log.warning(msg + ". Skipping.")
                    else:
                        print(f"[assembler] WARNING: {msg}. Skipping.")
                    continue
                a, b = ev.context.state_a, ev.context.state_b
                self._check_state(a, "NAC block", ev.line_no)
                self._check_state(b, "NAC block", ev.line_no)
                higher, lower, sign = canonical(a, b)
                res.couplings[linear_index(higher, lower)] = sign * ev.rows
                if (higher, lower) not in res.coupling_pairs:
                    res.coupling_pairs.append((higher, lower))

            elif isinstance(ev, FinalGradientReport):
                final_grad = ev

        if n_energy != self.nstat:
            raise StructuralMismatchError(
                f"Expected {self.nstat} states but found {n_energy} energies"
            )

        if n_gradient == 0:
            if final_grad is None:
                raise StructuralMismatchError("Could not find any gradient blocks")
            if self.log is not None:
                self.log.debug("No G_I/G_J blocks found. Using 'Final gradient' "
                               f"for state {self.nstatdyn} (single state assumption).")
            res.gradients[self.nstatdyn - 1] = final_grad.rows
            res.gradient_states.append(self.nstatdyn)

        return res


def parse_eom_output(lines, nat, nstat, nstatdyn, block_offset=BLOCK_OFFSET,
                     skip_undefined_nac=True, log=None):
    scanner = BlockScanner(nat, block_offset)
    assembler = QuantityAssembler(nat, nstat, nstatdyn, skip_undefined_nac, log)
    return assembler.assemble(scanner.scan(lines))
