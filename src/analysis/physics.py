"""
Kinematic utilities for the cone isolation.

Objects are Awkward records carrying (pt, eta, phi). Angular distances use
the ``vector`` momenta for the eta difference and an explicit azimuthal
wrap, so the same code runs on flat, jagged or pairwise-nested arrays.
"""

import numpy as np
import awkward as ak
import vector


def momentum(objects):
    """
    Wrap the (pt, eta, phi) fields of ``objects`` as momentum vectors.

    Parameters
    ----------
    objects : Awkward Array of records
        Any record array with 'pt', 'eta' and 'phi' fields. Extra fields
        (charge, uid, ...) are ignored.

    Returns
    -------
    vector.MomentumAwkward3D
        Vectors with the same jagged structure as ``objects``.
    """
    return vector.Array(
        ak.zip(
            {
                "pt": objects["pt"],
                "eta": objects["eta"],
                "phi": objects["phi"],
            }
        )
    )


def delta_phi(first_phi, second_phi):
    """
    Azimuthal difference first - second, moved into [-pi, pi).

    The difference is shifted by 2*pi only when it falls outside that
    range, so differences already inside it are returned unrounded.
    """
    dphi = first_phi - second_phi
    dphi = ak.where(dphi >= np.pi, dphi - 2 * np.pi, dphi)
    dphi = ak.where(dphi < -np.pi, dphi + 2 * np.pi, dphi)
    return dphi


def delta_r(first, second):
    """
    Angular separation sqrt(deta^2 + dphi^2) between two object arrays.

    ``first`` and ``second`` must already share one structure, e.g. the
    two sides of an ``ak.cartesian`` product. A separation of exactly d
    along eta or along phi evaluates to d.
    """
    deta = momentum(first).deltaeta(momentum(second))
    dphi = delta_phi(first["phi"], second["phi"])
    return np.sqrt(deta**2 + dphi**2)


def from_cartesian(px, py, pz):
    """
    Convert Cartesian momentum components into (pt, eta, phi).

    Parameters
    ----------
    px, py, pz : array-like
        Momentum components [GeV]. Awkward or NumPy arrays.

    Returns
    -------
    dict of arrays
        'pt', 'eta' and 'phi' with the structure of the inputs.
    """
    p3 = vector.Array(ak.zip({"px": px, "py": py, "pz": pz}))

    return {
        "pt": p3.pt,
        "eta": p3.eta,
        "phi": p3.phi,
    }
