import numpy as np
import pytest

SEP = " " + "-" * 59
ROW_HEADER = "   Atom           X                Y                Z"

NAC_ROWS = np.array([
    [0.01, 0.02, 0.03],
    [0.04, 0.05, 0.06],
    [0.07, 0.08, 0.09],
])


class EomOutputBuilder:
    """Synthetic Q-Chem EOM-CC output with the blocks Newton-X needs."""

    def __init__(self, kind="EOMEE"):
        self.kind = kind
        self.lines = [
            " Welcome to Q-Chem",
            " $molecule",
            " 0 1",
            " $end",
            "",
        ]

    def energies(self, values):
        for k, e in enumerate(values, 1):
            self.lines += [
                f" {self.kind} transition {k}/A",
                f" Total energy = {e:.8f} a.u.  Excitation energy = 1.2345 eV.",
                "",
            ]
        return self

    def block(self, label, rows):
        self.lines += [f" {label}", SEP, ROW_HEADER]
        for ia, (x, y, z) in enumerate(rows, 1):
            self.lines.append(f"   {ia:<4d} {x:16.10f} {y:16.10f} {z:16.10f}")
        self.lines += [SEP, ""]
        return self

    def state_a(self, state_id):
        self.lines.append(f" State A: eomee_ccsd/rhfref/singlets: {state_id}/A")
        return self

    def state_b(self, state_id):
        self.lines.append(f" State B: eomee_ccsd/rhfref/singlets: {state_id}/A")
        return self

    def pair(self, a, b, g_i=None, g_j=None, nac=None):
        self.state_a(a).state_b(b)
        if g_i is not None:
            self.block("G_I, a.u.", g_i)
        if g_j is not None:
            self.block("G_J, a.u.", g_j)
        if nac is not None:
            self.block("NAC d^x_IJ (CI part), a.u.", nac)
        return self

    def nac(self, rows):
        return self.block("NAC d^x_IJ (CI part), a.u.", rows)

    def final_gradient(self, rows):
        return self.block("Final gradient", rows)

    def finish(self):
        self.lines.append("        *  Thank you very much for using Q-Chem.  Have a nice day.  *")
        return self

    def text(self):
        return "\n".join(self.lines) + "\n"

    def write(self, path):
        path.write_text(self.text())
        return path


@pytest.fixture
def eom_output():
    return EomOutputBuilder


@pytest.fixture
def nac_rows():
    return NAC_ROWS.copy()


@pytest.fixture
def grad_rows():
    def make(scale, nat=3):
        return scale * (np.arange(nat * 3, dtype=float).reshape(nat, 3) + 1.0)
    return make


@pytest.fixture
def two_state_output(eom_output, nac_rows, grad_rows):
    """nat=3, nstat=2, pair (2,1) with gradients of both states and one NAC block."""
    return (eom_output()
            .energies([-75.123456, -74.987654])
            .pair(2, 1, g_i=grad_rows(0.1), g_j=grad_rows(0.01), nac=nac_rows)
            .finish())


@pytest.fixture
def write_control():
    def write(workdir, nat=3, nstat=2, nstatdyn=2, istep=1, t=0.5, kt=1, lvprt=1):
        path = workdir / "control.d"
        path.write_text(
            f"nat = {nat}\n"
            f"istep = {istep}\n"
            f"nstat = {nstat}\n"
            f"nstatdyn = {nstatdyn}\n"
            "ndamp = 0\n"
            f"kt = {kt}\n"
            "dt = 0.5\n"
            f"t = {t}\n"
            "tmax = 100.0\n"
            f"lvprt = {lvprt}\n"
            "prog = 16.0\n"
        )
        return path
    return write
