import os
import re

from .assembler import parse_eom_output
from .block_scanner import BLOCK_OFFSET
from .errors import MissingInputError
from .unit import DISTANCE

QCHEM_SUCCESS = "Thank you very much for using Q-Chem"
CC_STATE_TO_OPT_RE = re.compile(r"CC_STATE_TO_OPT", re.I)


class qchem_out:
    def __init__(self, filename=""):
        self.filename = filename
        self.text = ""
        self.lines = []

    def read_file(self, filename=None, text=None):
        if filename:
            self.filename = filename
        if text is not None:
            self.text = text
        else:
            if not os.path.exists(self.filename):
                raise MissingInputError(f"Could not open Q-Chem output '{self.filename}'")
            with open(self.filename) as f:
                self.text = f.read()
        self.lines = self.text.splitlines()
        self.parse()
        return self

    def parse(self):
        raise NotImplementedError

    @property
    def finished(self):
        return QCHEM_SUCCESS in self.text


class qchem_out_eom_nac(qchem_out):
    """
    EOM-CC output with state energies, G_I/G_J gradients and NAC vectors.

    After read_file(), self.results holds an EomResults with the
    energies, gradients and couplings of the step.
    """

    def __init__(self, filename="", nat=0, nstat=0, nstatdyn=1,
                 block_offset=BLOCK_OFFSET, skip_undefined_nac=True, log=None):
        super().__init__(filename)
        self.nat = nat
        self.nstat = nstat
        self.nstatdyn = nstatdyn
        self.block_offset = block_offset
        self.skip_undefined_nac = skip_undefined_nac
        self.log = log
        self.results = None

    def parse(self):
        self.results = parse_eom_output(
            self.lines, self.nat, self.nstat, self.nstatdyn,
            block_offset=self.block_offset,
            skip_undefined_nac=self.skip_undefined_nac,
            log=self.log,
        )


class qchem_nad_input:
    """
    Q-Chem input for one Newton-X step, built from a template.

    The $molecule block of the template keeps its charge/multiplicity
    line and gets the current geometry; CC_STATE_TO_OPT is pointed at
    the propagated state.
    """

    def __init__(self, template=""):
        self.template = template
        self.template_lines = []
        self.charge_mult_line = ""

    def read_template(self, template=None):
        if template:
            self.template = template
        if not os.path.exists(self.template):
            raise MissingInputError(f"Q-Chem template file '{self.template}' not found")
        with open(self.template) as f:
            self.template_lines = f.read().splitlines(keepends=True)

        self.charge_mult_line = ""
        for i, line in enumerate(self.template_lines):
            if "$molecule" in line.lower() and i + 1 < len(self.template_lines):
                self.charge_mult_line = self.template_lines[i + 1]
                break
        if self.charge_mult_line.strip() == "":
            raise MissingInputError(
                f"Could not find charge/multiplicity line in template '{self.template}'"
            )
        return self

    @staticmethod
    def geometry_lines(symbols, xyz_bohr):
        xyz_ang = DISTANCE(xyz_bohr, "bohr").convert_to("ang")
        return [f"{s:<4s} {x:15.8f} {y:15.8f} {z:15.8f}\n"
                for s, (x, y, z) in zip(symbols, xyz_ang)]

    def output(self, symbols, xyz_bohr, nstatdyn):
        out = []
        in_molecule = False
        for line in self.template_lines:
            low = line.lower()
            if "$molecule" in low:
                in_molecule = True
                out.append(line)
                out.append(self.charge_mult_line)
                out.extend(self.geometry_lines(symbols, xyz_bohr))
                continue
            if in_molecule:
                if "$end" in low:
                    in_molecule = False
                    out.append(line)
                # old charge/multiplicity and geometry are dropped
                continue
            if CC_STATE_TO_OPT_RE.search(line):
                out.append(f"CC_STATE_TO_OPT   [1,{nstatdyn}]\n")
            else:
                out.append(line)
        return "".join(out)

    def generate_inp(self, new_file_name, symbols, xyz_bohr, nstatdyn):
        with open(new_file_name, "w") as f:
            f.write(self.output(symbols, xyz_bohr, nstatdyn))
        return new_file_name
