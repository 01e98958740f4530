"""
I/O utilities: track trees and calibration histograms with uproot
"""

import logging

import uproot

logger = logging.getLogger(__name__)

DEFAULT_TREE = "events"

EVENT_BRANCHES = [
    "sel8",
    "pos_z",
]

TRACK_BRANCHES = [
    "trk_px",
    "trk_py",
    "trk_pz",
    "trk_pt",
    "trk_eta",
    "trk_phi",
    "trk_sign",
    "trk_has_its",
    "trk_has_tpc",
    "trk_has_tof",
    "trk_pv_contributor",
    "trk_its_ncls",
    "trk_its_cluster_map",
    "trk_its_chi2ncl",
    "trk_tpc_ncrossed_rows",
    "trk_tpc_nfindable",
    "trk_tpc_chi2ncl",
    "trk_dca_xy",
    "trk_dca_z",
    "trk_tpc_nsigma_pr",
    "trk_tof_nsigma_pr",
    "trk_tpc_nsigma_de",
    "trk_tof_nsigma_de",
    "trk_tpc_nsigma_he",
]

# generator information matched to each reconstructed track
TRACK_MC_BRANCHES = [
    "trk_has_mc",
    "trk_mc_pdg",
    "trk_mc_pt",
    "trk_mc_primary",
]

# generated particles
MC_PARTICLE_BRANCHES = [
    "mc_px",
    "mc_py",
    "mc_pz",
    "mc_pdg",
    "mc_primary",
]

DEFAULT_BRANCHES = EVENT_BRANCHES + TRACK_BRANCHES

MODE_BRANCHES = {
    "data": DEFAULT_BRANCHES,
    "qc": DEFAULT_BRANCHES,
    "systematics": DEFAULT_BRANCHES,
    "mc_rec": DEFAULT_BRANCHES + TRACK_MC_BRANCHES,
    "mc_gen": EVENT_BRANCHES + MC_PARTICLE_BRANCHES,
    "efficiency": DEFAULT_BRANCHES + TRACK_MC_BRANCHES + MC_PARTICLE_BRANCHES,
    "systematics_efficiency": DEFAULT_BRANCHES + TRACK_MC_BRANCHES + MC_PARTICLE_BRANCHES,
}


def _find_tree(file):
    """
    Detect the event TTree inside the ROOT file.

    Logic:
    1. If 'events' exists, use it.
    2. Otherwise, search for exactly one TTree.
    3. Otherwise, search for a TTree inside subdirectories.
    """
    if DEFAULT_TREE in file.keys():
        return file[DEFAULT_TREE]

    if f"{DEFAULT_TREE};1" in file.keys():
        return file[f"{DEFAULT_TREE};1"]

    tt_keys = [k for k, v in file.classnames().items() if v == "TTree"]
    if len(tt_keys) == 1:
        return file[tt_keys[0]]

    for key in file.keys():
        obj = file[key]
        if not hasattr(obj, "keys"):
            continue
        for subkey in obj.keys():
            full = f"{key}/{subkey}"
            if file[full].classname == "TTree":
                return file[full]

    raise RuntimeError(f"No TTree found in file {file.file_path}")


def load_events(filename, branches=None):
    """
    Load selected branches into an Awkward Array.
    Automatically detects the correct TTree name.
    """
    if branches is None:
        branches = DEFAULT_BRANCHES

    with uproot.open(filename) as f:
        tree = _find_tree(f)
        arrays = tree.arrays(branches, library="ak")

    return arrays


def _find_in_lists(file, name):
    # calibration objects may be stored inside a TList
    for key, classname in file.classnames().items():
        if classname != "TList":
            continue
        for item in file[key]:
            if getattr(item, "member", None) and item.member("fName") == name:
                return item
    return None


def load_histogram(path, name):
    """
    Read a 2D calibration histogram.

    Parameters
    ----------
    path : str
        ROOT file holding the calibration.
    name : str
        Histogram name, looked up as a key and inside stored TLists.

    Returns
    -------
    hist.Hist or None
        None when the file or a 2D histogram of that name is missing.
    """
    try:
        f = uproot.open(path)
    except (OSError, ValueError) as e:
        logger.error("Could not open the file %s: %s", path, e)
        return None

    with f:
        obj = f[name] if name in f else _find_in_lists(f, name)
        if obj is None or not obj.classname.startswith("TH2"):
            logger.error("Could not find a valid TH2 histogram %s in %s", name, path)
            return None
        h = obj.to_hist()

    logger.info("Opened histogram %s", name)
    return h


def write_histograms(path, hists):
    """Write a dict of name -> hist.Hist to a new ROOT file."""
    with uproot.recreate(path) as fout:
        for name, h in hists.items():
            fout[name] = h
