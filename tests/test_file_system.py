import numpy as np
import pytest

from nxqchem.util.errors import MissingInputError
from nxqchem.util.file_system import qchem_nad_input, qchem_out_eom_nac
from nxqchem.util.unit import BOHR_TO_ANG, DISTANCE, ENERGY

TEMPLATE = """$molecule
0 2
O   0.000000   0.000000   0.117000
H   0.000000   0.757000  -0.468000
H   0.000000  -0.757000  -0.468000
$end

$rem
METHOD            EOM-CCSD
BASIS             6-31G*
IP_STATES         [3]
CALC_NAC          TRUE
cc_state_to_opt   [1,1]
$end
"""


@pytest.fixture
def template(tmp_path):
    path = tmp_path / "qchem.inp.template"
    path.write_text(TEMPLATE)
    return path


def test_input_gets_geometry_and_state(template, tmp_path):
    xyz = np.array([[0.0, 0.0, 0.5], [0.0, 1.5, -1.0], [0.0, -1.5, -1.0]])
    inp = qchem_nad_input(str(template)).read_template()
    assert inp.charge_mult_line.strip() == "0 2"

    out = tmp_path / "qchem.inp"
    inp.generate_inp(out, ["O", "H", "H"], xyz, nstatdyn=3)
    lines = out.read_text().splitlines()

    assert lines[:2] == ["$molecule", "0 2"]
    assert lines[2].split()[0] == "O"
    assert float(lines[3].split()[2]) == pytest.approx(1.5 * BOHR_TO_ANG, abs=1e-8)
    assert lines[5] == "$end"
    assert "0.757000" not in out.read_text()
    assert "CC_STATE_TO_OPT   [1,3]" in lines
    assert "cc_state_to_opt   [1,1]" not in lines
    assert "CALC_NAC          TRUE" in lines


def test_template_errors(tmp_path):
    with pytest.raises(MissingInputError):
        qchem_nad_input(str(tmp_path / "missing.inp")).read_template()

    bad = tmp_path / "bad.inp"
    bad.write_text("$rem\nMETHOD EOM-CCSD\n$end\n")
    with pytest.raises(MissingInputError, match="charge/multiplicity"):
        qchem_nad_input(str(bad)).read_template()


def test_eom_output_file(tmp_path, two_state_output, nac_rows):
    path = two_state_output.write(tmp_path / "qchem.out")
    out = qchem_out_eom_nac(str(path), nat=3, nstat=2, nstatdyn=2).read_file()
    assert out.finished
    np.testing.assert_allclose(out.results.energies, [-75.123456, -74.987654])
    np.testing.assert_allclose(out.results.couplings[0], nac_rows)
    assert out.results.gradients.shape == (2, 3, 3)


def test_eom_output_missing(tmp_path):
    with pytest.raises(MissingInputError):
        qchem_out_eom_nac(str(tmp_path / "qchem.out"), nat=3, nstat=2).read_file()


def test_units():
    assert DISTANCE(1.0, "bohr").convert_to("ang") == pytest.approx(BOHR_TO_ANG)
    assert ENERGY(1.0).convert_to("ev") == pytest.approx(27.2113863)
    with pytest.raises(KeyError):
        ENERGY(1.0).convert_to("rydberg")
