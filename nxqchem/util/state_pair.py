# nxqchem/util/state_pair.py
"""
Lower-triangular indexing of electronic state pairs.

Coupling vectors are stored once per unordered pair, always as
h_IJ = <I|d/dR|J> with I the higher state. Pairs are enumerated as

    (2,1), (3,1), (3,2), (4,1), (4,2), (4,3), ...

which is the order Newton-X expects in nad_vectors.
"""


def canonical(a, b):
    """
    Order a reported pair (a, b) as (higher, lower).

    Returns
    -------
    (higher, lower, sign)
        sign is +1 if (a, b) already is (higher, lower), -1 otherwise,
        so that h_{higher,lower} = sign * d_ab.
    """
    a, b = int(a), int(b)
    if a < 1 or b < 1:
        raise ValueError(f"State ids are 1-based, got ({a}, {b})")
    if a == b:
        raise ValueError(f"State {a} cannot couple to itself")
    if a > b:
        return a, b, 1
    return b, a, -1


def linear_index(higher, lower):
    if not higher > lower >= 1:
        raise ValueError(f"Expected higher > lower >= 1, got ({higher}, {lower})")
    return (higher - 1) * (higher - 2) // 2 + (lower - 1)


def npair(nstat):
    return nstat * (nstat - 1) // 2


def iter_pairs(nstat):
    """Yield (higher, lower) in linear-index order."""
    for i in range(2, nstat + 1):
        for j in range(1, i):
            yield i, j
