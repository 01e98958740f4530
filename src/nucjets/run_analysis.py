"""
Main entry point for the antinuclei-in-jets analysis.

Reads track trees, clusters charged-particle jets in every event,
subtracts the underlying event estimated in perpendicular cones and
fills (anti)nuclei spectra in the jet and UE regions for the selected
analysis mode.

Supports serial execution, local multi-process parallelism via
ProcessPoolExecutor, and a local Dask cluster.
"""

import argparse
import glob
import logging
import os
import time
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed

import yaml
import numpy as np

from nucjets.histograms import BOOKERS, merge_histograms
from nucjets.io import MODE_BRANCHES, load_events, load_histogram, write_histograms
from nucjets.jet_analysis import UNFOLDED_MODES, process_events

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_HISTOGRAM = "detectorResponseMatrix"


# Argument parsing and config loading
def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Antiprotons and light antinuclei in jets and the underlying event."
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--n-workers",
        type=int,
        default=1,
        help="Number of worker processes for parallel file processing.",
    )
    parser.add_argument(
        "--executor",
        choices=["local", "dask"],
        default="local",
        help="Run files in a local process pool or on a local Dask cluster.",
    )
    parser.add_argument(
        "--mode",
        choices=sorted(BOOKERS),
        default=None,
        help="Analysis mode; overrides analysis.mode in the config.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed; overrides seed in the config.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


def load_config(path):
    with open(path) as f:
        return yaml.safe_load(f)


def setup_logging(verbose=False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def analysis_mode(config):
    return (config.get("analysis") or {}).get("mode", "data")


def load_response(config, mode):
    """
    Response matrix for jet pt unfolding, or None when unfolding is off
    or the calibration cannot be read.
    """
    unfolding = config.get("unfolding") or {}
    if mode not in UNFOLDED_MODES or not unfolding.get("apply", False):
        return None
    path = unfolding.get("file")
    if not path:
        logger.error("unfolding.apply is set but no unfolding.file is given")
        return None
    return load_histogram(path, unfolding.get("histogram", DEFAULT_RESPONSE_HISTOGRAM))


def file_seeds(seed, n_files):
    """Independent per-file seeds spawned from one root seed."""
    return np.random.SeedSequence(seed).spawn(n_files)


# Per-file analysis
def process_file(filename, config, seed):
    """
    Per-file analysis.

    Steps:
      1. Load the branches needed by the analysis mode.
      2. Read the response matrix when jet pt unfolding is enabled.
      3. Build the file's own random generator from ``seed``.
      4. Select events, find jets and fill the mode's histograms.
    """
    mode = analysis_mode(config)

    arrays = load_events(filename, MODE_BRANCHES[mode])
    response = load_response(config, mode)
    rng = np.random.default_rng(seed)

    hists, info = process_events(arrays, config, mode, rng, response=response)
    info["filename"] = filename
    return hists, info


def safe_process_file(fname, config, seed):
    """
    Wrapper so that a bad file doesn't kill the whole job.
    """
    try:
        return process_file(fname, config, seed)
    except Exception as e:
        logger.warning("Error in file %s: %s", fname, e)
        return None


def run_serial(files, config, seeds):
    results = []
    for i, (fname, seed) in enumerate(zip(files, seeds), start=1):
        out = safe_process_file(fname, config, seed)
        if out is not None:
            results.append(out)
        print(f"[{i}/{len(files)}] Completed {fname}")
    return results


def run_process_pool(files, config, seeds, n_workers):
    results = []
    with ProcessPoolExecutor(max_workers=n_workers) as pool:
        future_to_file = {
            pool.submit(safe_process_file, fname, config, seed): fname
            for fname, seed in zip(files, seeds)
        }
        for i, future in enumerate(as_completed(future_to_file), start=1):
            fname = future_to_file[future]
            try:
                out = future.result()
            except Exception as e:
                logger.error("%s: %s", fname, e)
                continue
            if out is not None:
                results.append(out)
            print(f"[{i}/{len(files)}] Completed {fname}")
    return results


def run_dask(files, config, seeds, n_workers):
    from nucjets.executor import compute_files, create_local_client, map_files

    client = create_local_client(n_workers=n_workers)
    try:
        tasks = map_files(client, files, safe_process_file, config, seeds)
        outputs = compute_files(client, tasks)
    finally:
        client.close()
    return [out for out in outputs if out is not None]


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)
    config = load_config(args.config)

    if args.mode is not None:
        config.setdefault("analysis", {})["mode"] = args.mode
    mode = analysis_mode(config)
    if mode not in BOOKERS:
        raise ValueError(f"Unknown analysis mode {mode!r}")

    pattern = os.path.join(config["data_dir"], config["file_pattern"])
    files = sorted(glob.glob(pattern))

    if not files:
        raise RuntimeError(f"No input files found for pattern {pattern}")

    print(f"Found {len(files)} input files.")

    analysis_cfg = config.get("analysis") or {}
    make_plots = analysis_cfg.get("make_plots", True)

    # Decide how many workers to use
    n_workers = config.get("n_workers", args.n_workers)
    max_procs = multiprocessing.cpu_count() or 1
    if n_workers > max_procs:
        logger.info(
            "Requested %d workers but only %d cores available; using %d.",
            n_workers, max_procs, max_procs,
        )
        n_workers = max_procs

    seed = args.seed if args.seed is not None else config.get("seed")
    seeds = file_seeds(seed, len(files))

    print(f"Mode {mode}: using {n_workers} worker(s) with the {args.executor} executor.")

    start_time = time.perf_counter()

    if args.executor == "dask":
        results = run_dask(files, config, seeds, n_workers)
    elif n_workers == 1:
        # serial path avoids multiprocessing overhead
        results = run_serial(files, config, seeds)
    else:
        results = run_process_pool(files, config, seeds, n_workers)

    wall_time = time.perf_counter() - start_time

    if not results:
        raise RuntimeError("No successful per-file results; nothing to merge.")

    hists, infos = zip(*results)
    total = merge_histograms(hists)

    outdir = config["output_dir"]
    os.makedirs(outdir, exist_ok=True)
    out_path = os.path.join(outdir, f"results_{mode}.root")
    write_histograms(out_path, total)

    if make_plots:
        from nucjets.plotting import plot_histograms

        plot_histograms(total, outdir)

    total_events = sum(info["n_events"] for info in infos)
    selected_events = sum(info["n_selected"] for info in infos)
    events_with_jets = sum(info["n_with_jets"] for info in infos)

    # Final summary
    print(f"Processed {len(results)} files.")
    print(f"Total events read: {total_events}")
    print(f"Events passing the event selection: {selected_events}")
    print(f"Events with at least one selected jet: {events_with_jets}")
    print(f"Total wall time: {wall_time:.2f} s")
    if wall_time > 0:
        rate = total_events / wall_time
        print(f"Average processing rate: {rate:.1f} events/s")
    print(f"Saved outputs to {outdir}")


if __name__ == "__main__":
    main()
