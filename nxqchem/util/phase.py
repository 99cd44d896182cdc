# nxqchem/util/phase.py
"""
Phase continuity of nonadiabatic coupling vectors.

Every single point fixes the sign of the electronic wavefunctions on its
own, so h_IJ(t) may come out as -h_IJ(t-dt) for no physical reason. For
each pair the sign of sum_atoms h(t) . h(t-dt) decides whether the new
vector is flipped.
"""

import os
import shutil
import subprocess

import numpy as np

from .errors import ExternalProcessError, MissingInputError, StructuralMismatchError
from .nx_io import read_vectors, write_vectors


def overlap_signs(new, old):
    """
    Per-pair sign that maximizes the overlap of new with old.

    Returns
    -------
    signs : np.ndarray (npair,)
        -1 where the overlap is negative, +1 otherwise (a zero overlap
        keeps the vector as it is).
    overlaps : np.ndarray (npair,)
        sum over atoms and components of new * old.
    """
    overlaps = np.einsum("pai,pai->p", new, old)
    signs = np.where(overlaps < 0.0, -1.0, 1.0)
    return signs, overlaps


class PhaseCorrector:
    name = None

    def correct(self, new, old):
        """Return (corrected, signs). old is None on the first step."""
        new = np.asarray(new, dtype=float)
        if old is None:
            return new.copy(), np.ones(new.shape[0])
        old = np.asarray(old, dtype=float)
        if old.shape != new.shape:
            raise StructuralMismatchError(
                f"Previous coupling vectors have shape {old.shape}, current ones {new.shape}"
            )
        return self._correct(new, old)

    def _correct(self, new, old):
        raise NotImplementedError


class OverlapPhaseCorrector(PhaseCorrector):
    name = "overlap"

    def _correct(self, new, old):
        signs, _ = overlap_signs(new, old)
        return new * signs[:, None, None], signs


class EscalarPhaseCorrector(PhaseCorrector):
    """
    Delegate the alignment to the Newton-X escalar program.

    escalar runs in workdir, reads oldh and newh and writes the aligned
    vectors to nadv.
    """
    name = "escalar"

    def __init__(self, workdir=".", nx_root=None, lvprt=1, debug_dir="../DEBUG"):
        self.workdir = workdir
        self.nx_root = nx_root if nx_root is not None else os.environ.get("NX", "")
        self.lvprt = lvprt
        self.debug_dir = debug_dir

    @property
    def executable(self):
        return os.path.join(self.nx_root, "escalar")

    def _correct(self, new, old):
        npair, nat, _ = new.shape
        write_vectors(os.path.join(self.workdir, "oldh"), old)
        write_vectors(os.path.join(self.workdir, "newh"), new)

        ret = subprocess.run([self.executable], cwd=self.workdir).returncode
        if ret != 0:
            raise ExternalProcessError(self.executable, ret, "Phase alignment failed")

        corrected = read_vectors(os.path.join(self.workdir, "nadv"), npair, nat)
        if corrected is None:
            raise MissingInputError(f"escalar did not write nadv in {self.workdir}")

        log_file = os.path.join(self.workdir, "escalar.log")
        if self.lvprt >= 3 and os.path.exists(log_file):
            debug_dir = os.path.join(self.workdir, self.debug_dir)
            os.makedirs(debug_dir, exist_ok=True)
            shutil.copy(log_file, debug_dir)

        signs, _ = overlap_signs(corrected, new)
        return corrected, signs


PHASE_CORRECTORS = {
    "overlap": OverlapPhaseCorrector,
    "escalar": EscalarPhaseCorrector,
}


def get_phase_corrector(method="overlap", **kwargs):
    try:
        cls = PHASE_CORRECTORS[method]
    except KeyError:
        raise ValueError(
            f"Unknown phase_method '{method}', choose from {sorted(PHASE_CORRECTORS)}"
        ) from None
    if cls is OverlapPhaseCorrector:
        return cls()
    return cls(**kwargs)
