"""
Cone isolation of reconstructed candidates.

For every candidate the transverse momenta of the isolation objects inside
a Delta R cone are summed per category (charged, charged pile-up, neutral),
corrected for pile-up, divided by the candidate pt and used to select
isolated candidates. Each event is one independent pass; the arrays are
jagged over events.
"""

import numpy as np
import awkward as ak

from src.analysis.physics import delta_r
from src.analysis.pileup import delta_beta_sum, lookup_rho, rho_corrected_sum
from src.analysis.selection import (
    isolation_cut,
    isolation_mask,
    select_isolation_objects,
)


OUTPUT_FIELDS = [
    "isolation_var",
    "isolation_var_rho_corr",
    "sum_pt_charged",
    "sum_pt_neutral",
    "sum_pt_charged_pu",
    "sum_pt",
]


def cone_sums(candidates, isolation, delta_r_max):
    """
    Sum the pt of isolation objects inside the cone of each candidate.

    An object contributes when Delta R <= delta_r_max (boundary included)
    and its uid differs from the candidate's, so a candidate that is also
    in the isolation collection never counts itself.

    Parameters
    ----------
    candidates : Awkward Array (events x candidates)
        Records with 'pt', 'eta', 'phi' and 'uid'.
    isolation : Awkward Array (events x objects)
        Records with 'pt', 'eta', 'phi', 'charge', 'is_pileup' and 'uid'.
    delta_r_max : float
        Cone size.

    Returns
    -------
    dict of Awkward Arrays (events x candidates)
        'sum_charged' (charged, not pile-up), 'sum_charged_pu',
        'sum_neutral', 'sum_all' and the object count 'n_objects'.
    """
    pairs = ak.cartesian({"cand": candidates, "iso": isolation}, nested=True)
    cand = pairs["cand"]
    iso = pairs["iso"]

    in_cone = (delta_r(cand, iso) <= delta_r_max) & (cand["uid"] != iso["uid"])
    inside = iso[in_cone]

    pt = inside["pt"]
    charged = inside["charge"] != 0
    pileup = inside["is_pileup"] != 0

    return {
        "sum_charged": ak.sum(pt[charged & ~pileup], axis=2),
        "sum_charged_pu": ak.sum(pt[charged & pileup], axis=2),
        "sum_neutral": ak.sum(pt[~charged], axis=2),
        "sum_all": ak.sum(pt, axis=2),
        "n_objects": ak.num(pt, axis=2),
    }


def compute_isolation(candidates, isolation, rho_bins, config):
    """
    Run the isolation over all events.

    Steps:
      1. Pre-filter isolation objects by pt.
      2. Accumulate the cone sums of every candidate.
      3. Look up rho at the candidate |eta|.
      4. Apply the delta-beta and rho corrections, divide by the candidate pt.
      5. Attach the isolation variables to every candidate.
      6. Select candidates according to the configured mode.

    Events without any isolation object left after step 1 emit no
    candidate.

    Parameters
    ----------
    candidates, isolation : Awkward Array (events x objects)
        See ``cone_sums``.
    rho_bins : Awkward Array (events x bins) or None
        See ``lookup_rho``.
    config : IsolationConfig

    Returns
    -------
    (selected, annotated)
        ``annotated`` holds every candidate with the isolation fields,
        ``selected`` the accepted ones, in input order.
    """
    isolation = select_isolation_objects(isolation, config.pt_min)
    sums = cone_sums(candidates, isolation, config.delta_r_max)

    pt = candidates["pt"]
    eta = candidates["eta"]
    rho = lookup_rho(abs(eta), rho_bins)

    sum_dbeta = delta_beta_sum(
        sums["sum_charged"], sums["sum_neutral"], sums["sum_charged_pu"]
    )
    sum_rho_corr = rho_corrected_sum(
        sums["sum_charged"], sums["sum_neutral"], rho, config.delta_r_max
    )

    # zero pt gives inf / NaN ratios, left as they are
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio_dbeta = sum_dbeta / pt
        ratio_rho_corr = sum_rho_corr / pt

    values = [
        ratio_dbeta,
        ratio_rho_corr,
        sums["sum_charged"],
        sums["sum_neutral"],
        sums["sum_charged_pu"],
        sums["sum_all"],
    ]
    annotated = candidates
    for name, value in zip(OUTPUT_FIELDS, values):
        annotated = ak.with_field(annotated, value, name)

    if config.use_rho_correction:
        iso_sum, ratio = sum_rho_corr, ratio_rho_corr
    else:
        iso_sum, ratio = sum_dbeta, ratio_dbeta

    iso_cut = isolation_cut(
        pt,
        eta,
        config.iso_p0,
        config.iso_p1,
        config.iso_p0_ee,
        config.iso_p1_ee,
    )
    accept = isolation_mask(
        iso_sum,
        ratio,
        iso_cut,
        config.selection_mode,
        config.pt_sum_max,
        config.pt_ratio_max,
    )

    has_isolation = ak.num(isolation, axis=1) > 0
    accept = accept & has_isolation

    return annotated[accept], annotated
