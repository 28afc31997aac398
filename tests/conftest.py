import sys
import os

import pytest

# Absolute path to project root
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Prepend project root so `src.` imports resolve without installing
sys.path.insert(0, PROJECT_ROOT)


def _obj(pt, eta=0.0, phi=0.0, charge=0, is_pileup=False, uid=0):
    """One candidate / isolation object record."""
    return {
        "pt": float(pt),
        "eta": float(eta),
        "phi": float(phi),
        "charge": charge,
        "is_pileup": is_pileup,
        "uid": uid,
    }


@pytest.fixture
def make_events():
    """Build an events x objects Awkward Array from lists of records."""
    ak = pytest.importorskip("awkward")

    def _make(*events):
        return ak.Array([list(event) for event in events])

    return _make


@pytest.fixture
def obj():
    """Factory for single object records."""
    return _obj
