import numpy as np
import pytest

from nxqchem.util.block_scanner import (
    BlockScanner,
    CouplingReport,
    EnergyReport,
    FinalGradientReport,
    GradientReport,
    ScanContext,
    StatePairHeader,
    parse_vector_rows,
    scan_blocks,
)
from nxqchem.util.errors import MissingInputError, ParseError


def _events(text, natom=3, **kwargs):
    return list(scan_blocks(text.splitlines(), natom, **kwargs))


def test_state_headers_update_context():
    lines = [
        " State A: eomip_ccsd/a: 3/A",
        " State B: eomip_ccsd/a: 1/A",
        " State A: eomip_ccsd/a: 2/A",
    ]
    events = list(scan_blocks(lines, 3))
    assert [type(e) for e in events] == [StatePairHeader] * 3
    assert events[0].context == ScanContext(3, None)
    assert events[1].context == ScanContext(3, 1)
    # B persists until a new B header
    assert events[2].context == ScanContext(2, 1)


def test_energy_needs_total_energy_on_next_line():
    lines = [
        " EOMIP transition 1/A",
        " Total energy = -74.50000000 a.u.  Excitation energy = 10.0 eV.",
        " EOMIP transition 2/A",
        " Convergence criterion met",
        " Total energy = -74.40000000 a.u.",
        " EOMEE transition 3/A",
        " Total energy = -74.30000000 a.u.",
    ]
    events = [e for e in scan_blocks(lines, 1) if isinstance(e, EnergyReport)]
    assert [e.value for e in events] == [-74.5, -74.3]


def test_gradient_blocks_carry_their_owner(eom_output, grad_rows):
    text = eom_output().pair(3, 1, g_i=grad_rows(1.0), g_j=grad_rows(2.0)).text()
    grads = [e for e in _events(text) if isinstance(e, GradientReport)]
    assert [(g.slot, g.state_id) for g in grads] == [("I", 3), ("J", 1)]
    np.testing.assert_allclose(grads[0].rows, grad_rows(1.0))
    np.testing.assert_allclose(grads[1].rows, grad_rows(2.0))


def test_rows_use_last_three_fields():
    lines = [
        "   1   C   0.1D+00  -0.2   0.3",
        "  2 H 1.0E-3 2.0e-3 3.0E-03",
    ]
    rows = parse_vector_rows(lines, 0, 2)
    np.testing.assert_allclose(rows, [[0.1, -0.2, 0.3], [1e-3, 2e-3, 3e-3]])


def test_truncated_block_raises(eom_output, nac_rows):
    text = eom_output().pair(2, 1, nac=nac_rows[:2]).text()
    lines = text.splitlines()
    # drop the trailing separator lines so only two rows follow the header
    idx = next(i for i, l in enumerate(lines) if "NAC d^x_IJ" in l)
    lines = lines[:idx + 5]
    with pytest.raises(ParseError) as err:
        list(scan_blocks(lines, 3))
    assert isinstance(err.value, MissingInputError)


def test_non_numeric_row_raises():
    lines = [
        " State A: x: 2/A",
        " State B: x: 1/A",
        " NAC d^x_IJ (CI part), a.u.",
        " ----",
        "  Atom X Y Z",
        "  1  0.1  0.2  abc",
    ]
    with pytest.raises(ParseError):
        list(scan_blocks(lines, 1))


def test_nac_without_context_is_not_read():
    lines = [
        " NAC d^x_IJ (CI part), a.u.",
        " ----",
    ]
    events = list(scan_blocks(lines, 3))
    assert len(events) == 1
    assert isinstance(events[0], CouplingReport)
    assert events[0].rows is None
    assert not events[0].context.complete


def test_gradient_without_context_has_no_rows():
    events = list(scan_blocks([" G_J, a.u."], 2))
    assert isinstance(events[0], GradientReport)
    assert events[0].rows is None
    assert events[0].state_id is None


def test_final_gradient_only_without_pair_gradients(eom_output, grad_rows):
    single = eom_output().energies([-1.0]).final_gradient(grad_rows(1.0)).text()
    events = _events(single)
    finals = [e for e in events if isinstance(e, FinalGradientReport)]
    assert len(finals) == 1
    np.testing.assert_allclose(finals[0].rows, grad_rows(1.0))

    # with G_I/G_J present the Final gradient rows are never parsed
    coupled = (eom_output()
               .pair(2, 1, g_i=grad_rows(1.0), g_j=grad_rows(2.0))
               .text()) + " Final gradient\n ---\n"
    events = _events(coupled)
    assert not any(isinstance(e, FinalGradientReport) for e in events)


def test_final_gradient_is_the_first_one(eom_output, grad_rows):
    text = (eom_output()
            .final_gradient(grad_rows(1.0))
            .final_gradient(grad_rows(5.0))
            .text())
    finals = [e for e in _events(text) if isinstance(e, FinalGradientReport)]
    assert len(finals) == 1
    np.testing.assert_allclose(finals[0].rows, grad_rows(1.0))


def test_block_offset_is_configurable():
    lines = [
        " State A: x: 2/A",
        " State B: x: 1/A",
        " NAC d^x_IJ (CI part), a.u.",
        " ----",
        "  1  0.1  0.2  0.3",
    ]
    nac = [e for e in scan_blocks(lines, 1, block_offset=2) if isinstance(e, CouplingReport)]
    np.testing.assert_allclose(nac[0].rows, [[0.1, 0.2, 0.3]])


def test_scanner_counts_gradient_reports(eom_output, grad_rows):
    text = eom_output().pair(2, 1, g_i=grad_rows(1.0), g_j=grad_rows(1.0)).text()
    scanner = BlockScanner(3)
    list(scanner.scan(text.splitlines()))
    assert scanner.n_gradient_reports == 2
    assert scanner.context == ScanContext(2, 1)


def test_scan_is_lazy():
    def lines():
        yield " State A: x: 2/A"
        yield " State B: x: 1/A"

    events = scan_blocks(lines(), 1)
    assert next(events).which == "A"


def test_energy_labels_with_any_irrep():
    lines = [
        " EOMEE transition 1/A1",
        " Total energy = -154.10000000 a.u.",
        " EOMEE transition 1/B2",
        " Total energy = -154.05000000 a.u.",
        " EOMSF transition 2/Ag",
        " Total energy = -154.00000000 a.u.",
    ]
    events = [e for e in scan_blocks(lines, 1) if isinstance(e, EnergyReport)]
    assert [e.value for e in events] == [-154.1, -154.05, -154.0]
