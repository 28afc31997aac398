"""
Main entry point for the cone isolation of reconstructed candidates.

Reads ROOT ntuples, builds the candidate, isolation-object and rho
collections, computes the isolation variables of every candidate,
selects isolated candidates and fills histograms of the isolation
variable.

Supports serial execution, local multi-process parallelism via
ProcessPoolExecutor, and a local Dask cluster.
"""

import argparse
import glob
import os
import time
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed

import yaml
import awkward as ak
import numpy as np
import matplotlib.pyplot as plt
from hist import Hist
import hist

from src.analysis.config import IsolationConfig
from src.analysis.io import load_collections
from src.analysis.isolation import compute_isolation
from src.analysis.pileup import overlapping_rho_bins
from src.analysis.selection import SelectionMode


# Argument parsing and config loading
def parse_args():
    parser = argparse.ArgumentParser(
        description="Cone isolation of reconstructed candidates over many ROOT files."
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--n-workers",
        type=int,
        default=None,
        help="Number of workers for parallel file processing (overrides n_workers in the config).",
    )
    parser.add_argument(
        "--backend",
        choices=["futures", "dask"],
        default="futures",
        help="Parallel backend used when more than one worker is requested.",
    )
    return parser.parse_args()


def load_config(path):
    with open(path) as f:
        return yaml.safe_load(f)


def isolation_config(config):
    return IsolationConfig.model_validate(config.get("isolation") or {})


def print_parameters(iso_cfg):
    print(f"[INFO] Iso_p0: {iso_cfg.iso_p0}")
    print(f"[INFO] Iso_p1: {iso_cfg.iso_p1}")
    print(f"[INFO] Iso_p0_ee: {iso_cfg.iso_p0_ee}")
    print(f"[INFO] Iso_p1_ee: {iso_cfg.iso_p1_ee}")
    print(f"[INFO] UsePTSum: {iso_cfg.use_pt_sum}")
    print(f"[INFO] UseLooseID: {iso_cfg.use_loose_id}")
    print(f"[INFO] Selection mode: {iso_cfg.selection_mode.value}")


def make_hist(config):
    nbins = config["hist"]["nbins"]
    hmin = config["hist"]["min"]
    hmax = config["hist"]["max"]

    iso_axis = hist.axis.Regular(
        nbins, hmin, hmax, name="iso", label=r"$I_{\mathrm{rel}}$"
    )
    return Hist(iso_axis)


# Per-file analysis
def process_file(filename, config):
    """
    Per-file isolation.

    Steps:
      1. Load the candidate, isolation and rho collections.
      2. Compute the isolation variables and the selection.
      3. Fill the isolation variable of all and of selected candidates.
    """
    iso_cfg = isolation_config(config)

    # 1) Load collections
    candidates, isolation, rho_bins = load_collections(
        filename,
        config["collections"],
        candidates=iso_cfg.candidate_input_array,
        isolation=iso_cfg.isolation_input_array,
        rho=iso_cfg.rho_input_array if iso_cfg.has_rho_input else None,
        tree_name=config.get("tree", "Delphes"),
    )

    n_overlap = 0
    if rho_bins is not None:
        n_overlap = int(ak.sum(overlapping_rho_bins(rho_bins)))

    # 2) Isolation
    selected, annotated = compute_isolation(candidates, isolation, rho_bins, iso_cfg)

    # 3) Histograms
    field = "isolation_var_rho_corr" if iso_cfg.use_rho_correction else "isolation_var"

    h_all = make_hist(config)
    h_selected = make_hist(config)

    iso_all = ak.to_numpy(ak.flatten(annotated[field]))
    iso_selected = ak.to_numpy(ak.flatten(selected[field]))

    if iso_all.size > 0:
        h_all.fill(iso_all)
    if iso_selected.size > 0:
        h_selected.fill(iso_selected)

    info = {
        "filename": filename,
        "n_events": len(candidates),
        "n_candidates": int(ak.sum(ak.num(annotated, axis=1))),
        "n_selected": int(ak.sum(ak.num(selected, axis=1))),
        "n_overlapping_rho": n_overlap,
        "sum_pt": ak.to_numpy(ak.flatten(annotated["sum_pt"])),
    }

    return h_all, h_selected, info


def safe_process_file(fname, config):
    """
    Wrapper so that a bad file doesn't kill the whole job.
    """
    try:
        return process_file(fname, config)
    except (OSError, ValueError, KeyError, RuntimeError) as e:
        print(f"[WARN] Error in file {fname}: {e}")
        return None


def run_futures(files, config, n_workers):
    results = []
    if n_workers == 1:
        # Serial path: avoids multiprocessing overhead
        for i, fname in enumerate(files, start=1):
            out = safe_process_file(fname, config)
            if out is not None:
                results.append(out)
            print(f"[{i}/{len(files)}] Completed {fname}")
        return results

    with ProcessPoolExecutor(max_workers=n_workers) as pool:
        future_to_file = {
            pool.submit(safe_process_file, fname, config): fname
            for fname in files
        }
        for i, future in enumerate(as_completed(future_to_file), start=1):
            fname = future_to_file[future]
            try:
                out = future.result()
            except Exception as e:
                print(f"[ERROR] {fname}: {e}")
                continue
            if out is not None:
                results.append(out)
            print(f"[{i}/{len(files)}] Completed {fname}")
    return results


def run_dask(files, config, n_workers):
    from src.distributed.executor import run_files

    results = []
    outs = run_files(files, safe_process_file, config, n_workers=n_workers)
    for i, (fname, out) in enumerate(outs, start=1):
        if out is not None:
            results.append(out)
        print(f"[{i}/{len(files)}] Completed {fname}")
    return results


def merge_hists(hists):
    total = hists[0].copy()
    for h in hists[1:]:
        total += h
    return total


def plot_isolation(total_all, total_selected, iso_cfg, outdir, log=False):
    edges = total_all.axes[0].edges
    fig, ax = plt.subplots()
    ax.step(edges[:-1], total_all.values(), where="post", label="All candidates")
    ax.step(edges[:-1], total_selected.values(), where="post", label="Selected")
    if iso_cfg.selection_mode in (SelectionMode.RELATIVE_RATIO, SelectionMode.PARAMETRIZED_CUT):
        ax.axvline(iso_cfg.pt_ratio_max, linestyle="--", label="PTRatioMax")
    if log:
        ax.set_yscale("log")
    ax.set_xlabel(r"$I_{\mathrm{rel}}$")
    ax.set_ylabel("Candidates")
    ax.set_title("Relative isolation" + (" (log scale)" if log else ""))
    ax.legend(loc="best", frameon=False)
    fig.tight_layout()
    fig.savefig(os.path.join(outdir, "isolation_log.png" if log else "isolation.png"))
    plt.close(fig)


def main():
    args = parse_args()
    config = load_config(args.config)
    iso_cfg = isolation_config(config)
    print_parameters(iso_cfg)

    pattern = os.path.join(config["data_dir"], config["file_pattern"])
    files = sorted(glob.glob(pattern))

    if not files:
        raise RuntimeError(f"No input files found for pattern {pattern}")

    print(f"Found {len(files)} input files.")

    analysis_cfg = config.get("analysis", {})
    make_plots = analysis_cfg.get("make_plots", True)

    # Decide how many workers to use
    n_workers = args.n_workers
    if n_workers is None:
        n_workers = config.get("n_workers", 1)
    max_procs = multiprocessing.cpu_count() or 1
    if n_workers > max_procs:
        print(
            f"[INFO] Requested {n_workers} workers but only {max_procs} cores available; "
            f"using {max_procs}."
        )
        n_workers = max_procs

    print(f"Using {n_workers} worker(s), backend '{args.backend}'.")

    start_time = time.perf_counter()

    if args.backend == "dask" and n_workers > 1:
        results = run_dask(files, config, n_workers)
    else:
        results = run_futures(files, config, n_workers)

    wall_time = time.perf_counter() - start_time

    if not results:
        raise RuntimeError("No successful per-file results; nothing to merge.")

    hists_all, hists_selected, infos = zip(*results)

    total_all = merge_hists(hists_all)
    total_selected = merge_hists(hists_selected)

    total_events = sum(info["n_events"] for info in infos)
    total_candidates = sum(info["n_candidates"] for info in infos)
    total_selected_n = sum(info["n_selected"] for info in infos)
    total_overlap = sum(info["n_overlapping_rho"] for info in infos)

    if total_overlap > 0:
        print(
            f"[WARN] {total_overlap} event(s) have overlapping rho bins; "
            "the last matching bin is used."
        )

    outdir = config["output_dir"]
    os.makedirs(outdir, exist_ok=True)

    np.save(os.path.join(outdir, "iso_counts.npy"), total_all.values())
    np.save(os.path.join(outdir, "iso_selected_counts.npy"), total_selected.values())
    np.save(os.path.join(outdir, "iso_edges.npy"), total_all.axes[0].edges)

    if make_plots:
        plot_isolation(total_all, total_selected, iso_cfg, outdir)
        plot_isolation(total_all, total_selected, iso_cfg, outdir, log=True)

    sum_pt_all = np.concatenate([info["sum_pt"] for info in infos])
    mean_sum_pt = float(np.mean(sum_pt_all)) if sum_pt_all.size > 0 else float("nan")

    # Final summary
    print(f"Processed {len(results)} files.")
    print(f"Total events: {total_events}")
    print(f"Total candidates ({iso_cfg.candidate_input_array}): {total_candidates}")
    print(f"Selected candidates ({iso_cfg.output_array}): {total_selected_n}")
    if total_candidates > 0:
        print(f"Isolation efficiency: {total_selected_n / total_candidates:.3f}")
    print(f"<sum pt in cone> = {mean_sum_pt:.2f} GeV")
    print(f"Total wall time: {wall_time:.2f} s")
    if wall_time > 0:
        rate = total_events / wall_time
        print(f"Average processing rate: {rate:.1f} events/s")
    print(f"Saved outputs to {outdir}")


if __name__ == "__main__":
    main()
