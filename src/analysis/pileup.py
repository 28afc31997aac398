"""
Pile-up density lookup and pile-up corrections of isolation sums.
"""

import numpy as np
import awkward as ak


def lookup_rho(abs_eta, rho_bins):
    """
    Pile-up density for each candidate from an eta-binned table.

    Parameters
    ----------
    abs_eta : Awkward Array (events x candidates)
        Absolute pseudorapidity of the candidates.
    rho_bins : Awkward Array (events x bins) or None
        Records with 'eta_low', 'eta_high' and 'rho'. A bin matches when
        eta_low <= |eta| < eta_high. None means there is no table.

    Returns
    -------
    Awkward Array (events x candidates)
        Rho of the last matching bin in table order, 0.0 when no bin
        matches or the event has no table.
    """
    if rho_bins is None:
        return ak.zeros_like(abs_eta, dtype=np.float64)

    pairs = ak.cartesian({"eta": abs_eta, "bin": rho_bins}, nested=True)
    bins = pairs["bin"]
    match = (pairs["eta"] >= bins["eta_low"]) & (pairs["eta"] < bins["eta_high"])

    matched = bins["rho"][match]
    last = ak.firsts(matched[:, :, -1:], axis=2)
    return ak.fill_none(last, 0.0)


def overlapping_rho_bins(rho_bins):
    """
    Flag events whose rho table has at least two overlapping bins.

    Overlaps make the lookup depend on the table order.
    """
    pairs = ak.combinations(rho_bins, 2, fields=["a", "b"])
    overlap = (pairs["a"]["eta_low"] < pairs["b"]["eta_high"]) & (
        pairs["b"]["eta_low"] < pairs["a"]["eta_high"]
    )
    return ak.any(overlap, axis=1)


def delta_beta_sum(sum_charged, sum_neutral, sum_charged_pu):
    """
    Delta-beta corrected sum: neutral pile-up is estimated as half of the
    charged pile-up activity in the cone.
    """
    return sum_charged + np.maximum(sum_neutral - 0.5 * sum_charged_pu, 0.0)


def rho_corrected_sum(sum_charged, sum_neutral, rho, delta_r_max):
    """
    Rho corrected sum: subtract rho times the cone area from the neutral sum.

    Negative densities count as zero. The neutral part is floored at zero,
    so the result is never below ``sum_charged``.
    """
    neutral_pu = np.maximum(rho, 0.0) * delta_r_max * delta_r_max * np.pi
    return sum_charged + np.maximum(sum_neutral - neutral_pu, 0.0)
