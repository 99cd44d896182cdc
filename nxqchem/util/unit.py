import numpy as np

BOHR_TO_ANG = 0.52917720859


# -----------------------------
# Unit system (scalar quantities)
# -----------------------------
class unit_type:
    """Base class for scalar unit types.

    Parameters
    ----------
    value : array-like
        Numeric value(s); stored as NumPy array of dtype float.
    unit : str
        The current unit key (must exist in self.DICT).

    Attributes
    ----------
    DICT : dict
        Maps unit name -> scale relative to the canonical unit for the category.
    """

    category = None

    def __init__(self, value, unit):
        self.value = np.array(value, dtype=float)
        self.unit = unit
        self.DICT = {}

    def convert_to(self, target):
        """Return the values expressed in `target` units."""
        if target not in self.DICT:
            raise KeyError(f"Unknown {self.category} unit '{target}', choose from {list(self.DICT)}")
        return self.value * (self.DICT[target] / self.DICT[self.unit])


class ENERGY(unit_type):
    """Energy units. Canonical unit: Hartree."""

    category = "energy"

    def __init__(self, value, unit="hartree"):
        super().__init__(value, unit)
        self.DICT = {"hartree": 1, "kcal/mol": 627.51, "ev": 27.2113863, "kj": 2625.5}


class DISTANCE(unit_type):
    """Distance units. Canonical unit: Angstrom."""

    category = "distance"

    def __init__(self, value, unit="ang"):
        super().__init__(value, unit)
        self.DICT = {"ang": 1, "bohr": 1 / BOHR_TO_ANG, "nm": 0.1}
