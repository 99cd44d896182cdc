# nxqchem/util/block_scanner.py
"""
Single forward pass over a Q-Chem EOM-CC output.

The output is not a grammar, it is a sequence of labeled report blocks.
The scanner recognizes the labels that matter for Newton-X and turns
them into typed events. Each event carries the "State A / State B"
context that was active when it was emitted, so that blocks whose
meaning depends on an earlier header can be resolved without any
hidden state.

Block layout (offset = 3 by default):

    NAC d^x_IJ (CI part), a.u.          <- label line, index i
    ----------------------------        <- i + 1
      Atom     X      Y      Z          <- i + 2
       1    0.0100  0.0200  0.0300      <- i + 3, first data row
       ...                              <- natom rows in total
"""

import re
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import ParseError


STATE_A_RE = re.compile(r"State A:.*:\s+(\d+)/")
STATE_B_RE = re.compile(r"State B:.*:\s+(\d+)/")
ENERGY_LABEL_RE = re.compile(r"(?:EOMEE|EOMIP|EOMEA|EOMSF) transition\s+\d+/\w+")
TOTAL_ENERGY_RE = re.compile(r"Total energy\s+=\s+(-?\d+\.\d+)\s+a\.u\.")
GRAD_I_RE = re.compile(r"^\s*G_I,\s*a\.u\.")
GRAD_J_RE = re.compile(r"^\s*G_J,\s*a\.u\.")
NAC_RE = re.compile(r"^\s*NAC d\^x_IJ \(CI part\), a\.u\.")
FINAL_GRAD_RE = re.compile(r"Final gradient")

BLOCK_OFFSET = 3


@dataclass(frozen=True)
class ScanContext:
    state_a: Optional[int] = None
    state_b: Optional[int] = None

    def update(self, which, state_id):
        if which == "A":
            return ScanContext(state_id, self.state_b)
        return ScanContext(self.state_a, state_id)

    @property
    def complete(self):
        return self.state_a is not None and self.state_b is not None


@dataclass
class StatePairHeader:
    which: str
    state_id: int
    context: ScanContext
    line_no: int


@dataclass
class EnergyReport:
    value: float
    context: ScanContext
    line_no: int


@dataclass
class GradientReport:
    """G_I belongs to state A, G_J to state B. rows is None when that state is unknown."""
    slot: str
    rows: Optional[np.ndarray]
    context: ScanContext
    line_no: int

    @property
    def state_id(self):
        if self.slot == "I":
            return self.context.state_a
        return self.context.state_b


@dataclass
class CouplingReport:
    """rows is None when the A/B context is incomplete; such a block is not read."""
    rows: Optional[np.ndarray]
    context: ScanContext
    line_no: int


@dataclass
class FinalGradientReport:
    rows: np.ndarray
    context: ScanContext
    line_no: int


def _to_float(token):
    return float(token.replace("D", "E").replace("d", "e"))


def parse_vector_rows(lines, start, natom, label="vector"):
    """
    Read natom rows of "index x y z" starting at lines[start].

    Only the last three fields of a row are used, so leading atom
    labels or blank fields are ignored.

    Returns
    -------
    np.ndarray
        Shape (natom, 3).
    """
    available = len(lines) - start
    if available < natom:
        raise ParseError(
            f"{label} block needs {natom} data rows but only {max(available, 0)} remain",
            start,
        )

    rows = np.zeros((natom, 3))
    for ia in range(natom):
        parts = lines[start + ia].split()
        if len(parts) < 3:
            raise ParseError(f"{label} row for atom {ia + 1} has fewer than 3 fields", start + ia)
        try:
            rows[ia] = [_to_float(p) for p in parts[-3:]]
        except ValueError:
            raise ParseError(
                f"{label} row for atom {ia + 1} is not numeric: '{lines[start + ia].strip()}'",
                start + ia,
            ) from None
    return rows


class BlockScanner:
    """
    Lazy event stream over the lines of one Q-Chem output.

    Usage:
        scanner = BlockScanner(natom=3)
        for event in scanner.scan(lines):
            ...
    """

    def __init__(self, natom, block_offset=BLOCK_OFFSET):
        if natom < 1:
            raise ValueError(f"natom must be positive, got {natom}")
        self.natom = natom
        self.block_offset = block_offset
        self.context = ScanContext()
        self.n_gradient_reports = 0

    def _read_rows(self, lines, i, label):
        return parse_vector_rows(lines, i + self.block_offset, self.natom, label)

    def scan(self, lines):
        if not isinstance(lines, (list, tuple)):
            lines = list(lines)

        self.context = ScanContext()
        self.n_gradient_reports = 0
        final_grad_line = None

        n = len(lines)
        i = 0
        while i < n:
            line = lines[i]
            next_i = i + 1

            m = STATE_A_RE.search(line)
            if m:
                self.context = self.context.update("A", int(m.group(1)))
                yield StatePairHeader("A", int(m.group(1)), self.context, i)
            m = STATE_B_RE.search(line)
            if m:
                self.context = self.context.update("B", int(m.group(1)))
                yield StatePairHeader("B", int(m.group(1)), self.context, i)

            if ENERGY_LABEL_RE.search(line) and i + 1 < n:
                m = TOTAL_ENERGY_RE.search(lines[i + 1])
                if m:
                    yield EnergyReport(float(m.group(1)), self.context, i)
                    next_i = i + 2

            elif GRAD_I_RE.search(line) or GRAD_J_RE.search(line):
                slot = "I" if GRAD_I_RE.search(line) else "J"
                owner = self.context.state_a if slot == "I" else self.context.state_b
                rows = None
                if owner is not None:
                    rows = self._read_rows(lines, i, f"G_{slot}")
                    next_i = i + self.block_offset + self.natom
                self.n_gradient_reports += 1
                yield GradientReport(slot, rows, self.context, i)

            elif NAC_RE.search(line):
                rows = None
                if self.context.complete:
                    rows = self._read_rows(lines, i, "NAC")
                    next_i = i + self.block_offset + self.natom
                yield CouplingReport(rows, self.context, i)

            elif final_grad_line is None and FINAL_GRAD_RE.search(line):
                final_grad_line = i

            i = next_i

        # Single-state runs print no G_I/G_J blocks; the rows of the first
        # "Final gradient" are read only in that case.
        if self.n_gradient_reports == 0 and final_grad_line is not None:
            rows = self._read_rows(lines, final_grad_line, "Final gradient")
            yield FinalGradientReport(rows, self.context, final_grad_line)


def scan_blocks(lines, natom, block_offset=BLOCK_OFFSET):
    return BlockScanner(natom, block_offset).scan(lines)
