# nxqchem/util/nx_io.py
"""
Newton-X side of the interface: run control, geometry and the numeric
result files exchanged with the propagation driver.
"""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from .errors import MissingInputError, ParseError


REQUIRED_KEYS = ("nat", "nstat", "nstatdyn")


@dataclass
class RunControl:
    nat: int
    nstat: int
    nstatdyn: int
    istep: int = 0
    kt: int = 1
    dt: float = 0.0
    t: float = 0.0
    tmax: float = 0.0
    lvprt: int = 1
    extra: dict = field(default_factory=dict)

    @property
    def npair(self):
        return self.nstat * (self.nstat - 1) // 2

    def summary(self):
        return (f"nat={self.nat} istep={self.istep} nstat={self.nstat} "
                f"nstatdyn={self.nstatdyn} kt={self.kt} dt={self.dt} t={self.t} "
                f"tmax={self.tmax} lvprt={self.lvprt}")


def _number(text):
    text = text.strip().strip(",").strip("'\"")
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text.replace("D", "E").replace("d", "e"))
    except ValueError:
        return text


def load_status(path="control.d"):
    """
    Read the current dynamics status.

    Accepts "key = value" lines; namelist markers (&...  /), trailing
    commas and "!" or "#" comments are ignored. Keys are case-insensitive.
    """
    if not os.path.exists(path):
        raise MissingInputError(f"Cannot open run control file '{path}'")

    values = {}
    with open(path) as f:
        for raw in f:
            line = raw.split("!")[0].split("#")[0].strip()
            if not line or line.startswith("&") or line == "/":
                continue
            for item in line.split(","):
                if "=" not in item:
                    continue
                key, val = item.split("=", 1)
                values[key.strip().lower()] = _number(val)

    missing = [k for k in REQUIRED_KEYS if k not in values]
    if missing:
        raise MissingInputError(f"{path} does not define {', '.join(missing)}")

    known = {"nat", "nstat", "nstatdyn", "istep", "kt", "dt", "t", "tmax", "lvprt"}
    ctl = RunControl(**{k: v for k, v in values.items() if k in known})
    ctl.extra = {k: v for k, v in values.items() if k not in known}
    for key in ("nat", "nstat", "nstatdyn", "istep", "kt", "lvprt"):
        setattr(ctl, key, int(getattr(ctl, key)))
    for key in ("dt", "t", "tmax"):
        setattr(ctl, key, float(getattr(ctl, key)))
    return ctl


@dataclass
class Geometry:
    symbols: list
    numbers: np.ndarray
    xyz: np.ndarray     # (nat, 3) Bohr
    masses: np.ndarray  # amu

    @property
    def natom(self):
        return len(self.symbols)


def read_geom(path="geom"):
    """Newton-X geom file: symbol, Z, x, y, z (Bohr), mass (amu) per atom."""
    if not os.path.exists(path):
        raise MissingInputError(f"Cannot open geometry file '{path}'")

    symbols, numbers, xyz, masses = [], [], [], []
    with open(path) as f:
        for k, line in enumerate(f):
            parts = line.split()
            if not parts:
                continue
            if len(parts) < 6:
                raise ParseError(f"{path}: expected 6 fields, got {len(parts)}", k)
            try:
                numbers.append(float(parts[1]))
                xyz.append([float(v) for v in parts[2:5]])
                masses.append(float(parts[5]))
            except ValueError:
                raise ParseError(f"{path}: non-numeric geometry row '{line.strip()}'", k) from None
            symbols.append(parts[0])

    return Geometry(symbols, np.array(numbers), np.array(xyz).reshape(-1, 3), np.array(masses))


def read_single_value(path, default=""):
    if not os.path.exists(path):
        return default
    with open(path) as f:
        return f.read().strip()


def _has_content(path):
    return os.path.exists(path) and os.path.getsize(path) > 0


def write_energy(energies, workdir="."):
    """epot, keeping the previous one as oldepot and a copy as newepot."""
    workdir = Path(workdir)
    epot = workdir / "epot"
    if _has_content(epot):
        shutil.copy(epot, workdir / "oldepot")
    np.savetxt(epot, np.asarray(energies).reshape(-1, 1), fmt="%.10f")
    shutil.copy(epot, workdir / "newepot")
    return epot


def write_gradients(gradients, nstatdyn, workdir="."):
    """grad.all holds every state (state outer, atom inner); grad only nstatdyn."""
    workdir = Path(workdir)
    gradients = np.asarray(gradients)
    nstat, nat, _ = gradients.shape
    np.savetxt(workdir / "grad.all", gradients.reshape(nstat * nat, 3), fmt="%.12e", delimiter="  ")
    np.savetxt(workdir / "grad", gradients[nstatdyn - 1], fmt="%.12e", delimiter="  ")
    return workdir / "grad"


def write_vectors(path, vectors):
    """Coupling vectors, pairs in linear-index order, atoms inner."""
    vectors = np.asarray(vectors)
    np.savetxt(path, vectors.reshape(-1, 3), fmt="%.12e", delimiter="  ")
    return path


def read_vectors(path, npair, nat):
    """Read a coupling file written by write_vectors (or Newton-X). None if absent or empty."""
    if not _has_content(path):
        return None
    data = np.loadtxt(path, ndmin=2)
    if data.shape != (npair * nat, 3):
        raise ParseError(
            f"{path} has shape {data.shape}, expected ({npair * nat}, 3) "
            f"for {npair} pairs and {nat} atoms"
        )
    return data.reshape(npair, nat, 3)


def archive_output(src, archive_dir, t):
    """Keep a copy of this step's Q-Chem output as <archive_dir>/<t>.out."""
    os.makedirs(archive_dir, exist_ok=True)
    dest = os.path.join(archive_dir, f"{t}.out")
    shutil.copy(src, dest)
    return dest
