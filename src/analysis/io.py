"""
I/O utilities for reading candidate, isolation-object and rho collections
from ROOT ntuples with uproot.
"""

import uproot
import awkward as ak

from src.analysis.physics import from_cartesian


OBJECT_FIELDS = ["pt", "eta", "phi", "charge", "is_pileup", "uid"]
RHO_FIELDS = ["eta_low", "eta_high", "rho"]


def _find_tree(file, name="Delphes"):
    """
    Detect the correct TTree inside the ROOT file.

    Logic:
    1. If ``name`` exists, use it.
    2. Otherwise, search for exactly one TTree.
    3. Otherwise, search for a TTree inside subkeydirectories.
    """
    # Direct match
    if name in file.keys():
        return file[name]

    # Match with ';1' versioning
    if f"{name};1" in file.keys():
        return file[f"{name};1"]

    # If there is exactly one TTree in the root file:
    tt_keys = [k for k, v in file.classnames().items() if v == "TTree"]
    if len(tt_keys) == 1:
        return file[tt_keys[0]]

    # Search inside directories
    for key in file.keys():
        try:
            directory = file[key]
            subkeys = directory.keys()
        except AttributeError:
            continue
        for subkey in subkeys:
            full = f"{key}/{subkey}"
            if file[full].classname == "TTree":
                return file[full]

    raise RuntimeError(f"No TTree found in file {file.file_path}")


def _sources(collections, name):
    """Sources of a configured collection, always as a list."""
    if name not in collections:
        raise ValueError(f"Collection '{name}' is not configured")
    sources = collections[name]
    if isinstance(sources, dict):
        sources = [sources]
    return sources


def _column(arrays, source, key, reference):
    """Branch named by ``source[key]``, or a constant broadcast to ``reference``."""
    value = source[key]
    if isinstance(value, str):
        return arrays[value]
    return ak.full_like(reference, value, dtype=type(value))


def _reference_branch(arrays, source):
    for value in source.values():
        if isinstance(value, str):
            return arrays[value]
    raise ValueError(f"Source {source} names no branch")


def build_objects(arrays, source):
    """
    Build candidate / isolation-object records from one source mapping.

    The momentum is taken from 'pt', 'eta', 'phi' or, when those are
    missing, from 'px', 'py', 'pz'.
    """
    reference = _reference_branch(arrays, source)

    if all(key in source for key in ("pt", "eta", "phi")):
        kinematics = {key: _column(arrays, source, key, reference) for key in ("pt", "eta", "phi")}
    elif all(key in source for key in ("px", "py", "pz")):
        kinematics = from_cartesian(
            _column(arrays, source, "px", reference),
            _column(arrays, source, "py", reference),
            _column(arrays, source, "pz", reference),
        )
    else:
        raise ValueError(f"Source {source} has neither (pt, eta, phi) nor (px, py, pz)")

    fields = dict(kinematics)
    for key in ("charge", "is_pileup", "uid"):
        if key not in source:
            raise ValueError(f"Source {source} is missing field '{key}'")
        fields[key] = _column(arrays, source, key, reference)

    return ak.zip({key: fields[key] for key in OBJECT_FIELDS})


def build_rho_bins(arrays, source):
    """
    Build rho-bin records from one source mapping.

    Bin edges come either from 'eta_low' / 'eta_high' or from a two-element
    'edges' branch.
    """
    reference = _reference_branch(arrays, source)

    if "edges" in source:
        edges = arrays[source["edges"]]
        eta_low = edges[:, :, 0]
        eta_high = edges[:, :, 1]
    else:
        eta_low = _column(arrays, source, "eta_low", reference)
        eta_high = _column(arrays, source, "eta_high", reference)

    return ak.zip(
        {
            "eta_low": eta_low,
            "eta_high": eta_high,
            "rho": _column(arrays, source, "rho", reference),
        }
    )


def build_collection(arrays, sources, builder):
    """Build every source and concatenate them per event."""
    parts = [builder(arrays, source) for source in sources]
    if len(parts) == 1:
        return parts[0]
    return ak.concatenate(parts, axis=1)


def _branches(sources):
    names = []
    for source in sources:
        for value in source.values():
            if isinstance(value, str) and value not in names:
                names.append(value)
    return names


def load_collections(filename, collections, candidates, isolation, rho=None, tree_name="Delphes"):
    """
    Load the candidate, isolation and (optional) rho collections of a file.

    Parameters
    ----------
    filename : str
        ROOT file path.
    collections : dict
        The 'collections' section of the configuration.
    candidates, isolation : str
        Names of the candidate and isolation-object collections.
    rho : str or None
        Name of the rho collection, None or '' when there is none.
    tree_name : str
        Preferred TTree name.

    Returns
    -------
    (candidates, isolation, rho_bins)
        Awkward Arrays jagged over events; ``rho_bins`` is None without a
        rho collection.
    """
    candidate_sources = _sources(collections, candidates)
    isolation_sources = _sources(collections, isolation)
    rho_sources = _sources(collections, rho) if rho else []

    branches = _branches(candidate_sources + isolation_sources + rho_sources)

    with uproot.open(filename) as f:
        tree = _find_tree(f, tree_name)
        arrays = tree.arrays(branches, library="ak")

    candidate_array = build_collection(arrays, candidate_sources, build_objects)
    isolation_array = build_collection(arrays, isolation_sources, build_objects)
    rho_array = build_collection(arrays, rho_sources, build_rho_bins) if rho_sources else None

    return candidate_array, isolation_array, rho_array
