"""
Selection logic for the cone isolation.

This module holds the isolation-object pre-filter and the isolation
criterion applied to candidates: the choice of selection mode, the
eta-dependent parametrized cut and the final accept mask.
"""

import enum

import awkward as ak


# Boundary between the central region and the endcaps
CENTRAL_ETA_MAX = 1.488


class SelectionMode(enum.Enum):
    ABSOLUTE_SUM = "absolute_sum"
    PARAMETRIZED_CUT = "parametrized_cut"
    RELATIVE_RATIO = "relative_ratio"
    ACCEPT_ALL = "accept_all"


def select_isolation_objects(objects, pt_min):
    """
    Keep isolation objects with pt >= pt_min.
    Mask is jagged, applied per event.
    """
    return objects[objects["pt"] >= pt_min]


def selection_mode(use_pt_sum, use_loose_id):
    """
    Pick the selection mode from the two configuration switches.

    With both switches on no clause applies and every candidate is
    accepted.
    """
    if use_pt_sum and not use_loose_id:
        return SelectionMode.ABSOLUTE_SUM
    if use_loose_id and not use_pt_sum:
        return SelectionMode.PARAMETRIZED_CUT
    if not use_pt_sum:
        return SelectionMode.RELATIVE_RATIO
    return SelectionMode.ACCEPT_ALL


def isolation_cut(pt, eta, p0, p1, p0_ee, p1_ee):
    """
    Eta-dependent cut on the isolation sum, linear in the candidate pt.
    """
    central = abs(eta) < CENTRAL_ETA_MAX
    return ak.where(central, p0 + p1 * pt, p0_ee + p1_ee * pt)


def isolation_mask(iso_sum, ratio, iso_cut, mode, pt_sum_max, pt_ratio_max):
    """
    Accept mask for candidates given their isolation sum and ratio.

    Parameters
    ----------
    iso_sum, ratio : array-like
        Corrected isolation sum [GeV] and its ratio to the candidate pt.
    iso_cut : array-like
        Output of ``isolation_cut`` for the same candidates.
    mode : SelectionMode
        Selection mode of the pass.
    pt_sum_max, pt_ratio_max : float
        Cuts of the absolute-sum and relative-ratio modes.

    Returns
    -------
    array-like of bool
        True for accepted candidates. NaN sums or ratios never reject.
    """
    if mode is SelectionMode.ABSOLUTE_SUM:
        reject = iso_sum > pt_sum_max
    elif mode is SelectionMode.PARAMETRIZED_CUT:
        # the relative-ratio cut still applies after the parametrized one
        reject = (iso_sum > iso_cut) | (ratio > pt_ratio_max)
    elif mode is SelectionMode.RELATIVE_RATIO:
        reject = ratio > pt_ratio_max
    else:
        return ak.ones_like(iso_sum, dtype=bool)

    return ~reject
