"""
Event and track selections for the antinuclei-in-jets analysis.

Masks are computed on Awkward Arrays holding one entry per event and
jagged ``trk_*`` branches, so a whole file is selected at once. The
same masks apply to the per-event NumPy columns of a single event.
"""

from dataclasses import dataclass, fields, replace


def _flag(arrays, name):
    # flags may be stored as bool or as 0/1 integers
    return arrays[name] != 0


def event_selection(arrays, z_vtx=10.0):
    """
    Keep events passing sel8 with |z_vtx| <= z_vtx [cm].
    """
    event_mask = _flag(arrays, "sel8") & (abs(arrays["pos_z"]) <= z_vtx)
    return arrays[event_mask]


def should_reject_event(rng, rejection_percentage):
    """
    Random event rejection. Draws an integer in [0, 99] and rejects the
    event when it does not exceed ``rejection_percentage``.
    """
    return int(rng.integers(0, 100)) <= rejection_percentage


def jet_reconstruction_track_mask(arrays):
    """
    Fixed track cuts for the particles entering jet finding.
    """
    pt = arrays["trk_pt"]
    eta = arrays["trk_eta"]

    # at least one hit in the three innermost ITS layers
    inner_its_hit = (arrays["trk_its_cluster_map"] & 0b111) != 0
    crossed_over_findable = arrays["trk_tpc_ncrossed_rows"] / arrays["trk_tpc_nfindable"]
    max_dca_xy = 0.0105 + 0.035 / pt**1.1

    return (
        _flag(arrays, "trk_has_its")
        & inner_its_hit
        & _flag(arrays, "trk_has_tpc")
        & (arrays["trk_tpc_ncrossed_rows"] >= 70)
        & (crossed_over_findable >= 0.8)
        & (arrays["trk_tpc_chi2ncl"] <= 4.0)
        & (arrays["trk_its_chi2ncl"] <= 36.0)
        & (eta >= -0.8)
        & (eta <= 0.8)
        & (pt >= 0.1)
        & (abs(arrays["trk_dca_xy"]) <= max_dca_xy)
        & (abs(arrays["trk_dca_z"]) <= 2.0)
    )


@dataclass(frozen=True)
class TrackSelection:
    """Quality cuts for the (anti)nuclei candidates."""

    require_pv_contributor: bool = False
    min_its_ncls: int = 5
    min_tpc_ncrossed_rows: float = 80
    min_tpc_crossed_over_findable: float = 0.8
    max_chi2_tpc: float = 4.0
    max_chi2_its: float = 36.0
    min_pt: float = 0.3
    min_eta: float = -0.8
    max_eta: float = 0.8
    max_dca_xy: float = 0.05
    max_dca_z: float = 0.05

    @classmethod
    def from_config(cls, tracks_cfg):
        """Build from the ``tracks`` config section; unknown keys are ignored."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (tracks_cfg or {}).items() if k in names})

    def variant(self, index):
        """Copy with the cuts of systematic variant ``index`` applied."""
        return replace(self, **SYSTEMATIC_VARIANTS[index])


# ITS clusters, TPC crossed rows and DCA cuts varied for systematic uncertainties
SYSTEMATIC_VARIANTS = [
    dict(min_its_ncls=n_its, min_tpc_ncrossed_rows=n_tpc, max_dca_xy=dca_xy, max_dca_z=dca_z)
    for n_its, n_tpc, dca_xy, dca_z in zip(
        [5, 6, 5, 4, 5, 3, 5, 6, 3, 4],
        [100, 85, 80, 110, 95, 90, 105, 95, 100, 105],
        [0.05, 0.07, 0.10, 0.03, 0.06, 0.15, 0.08, 0.04, 0.09, 0.10],
        [0.1, 0.15, 0.3, 0.075, 0.12, 0.18, 0.2, 0.1, 0.15, 0.2],
    )
]


def quality_track_mask(arrays, policy):
    """
    Track-quality and kinematic cuts of ``policy``, without the DCA cuts.
    """
    eta = arrays["trk_eta"]
    crossed_over_findable = arrays["trk_tpc_ncrossed_rows"] / arrays["trk_tpc_nfindable"]

    mask = (
        _flag(arrays, "trk_has_its")
        & (arrays["trk_its_ncls"] >= policy.min_its_ncls)
        & _flag(arrays, "trk_has_tpc")
        & (arrays["trk_tpc_ncrossed_rows"] >= policy.min_tpc_ncrossed_rows)
        & (crossed_over_findable >= policy.min_tpc_crossed_over_findable)
        & (arrays["trk_tpc_chi2ncl"] <= policy.max_chi2_tpc)
        & (arrays["trk_its_chi2ncl"] <= policy.max_chi2_its)
        & (eta >= policy.min_eta)
        & (eta <= policy.max_eta)
        & (arrays["trk_pt"] >= policy.min_pt)
    )
    if policy.require_pv_contributor:
        mask = mask & _flag(arrays, "trk_pv_contributor")
    return mask


def dca_track_mask(arrays, policy):
    return (abs(arrays["trk_dca_xy"]) <= policy.max_dca_xy) & (
        abs(arrays["trk_dca_z"]) <= policy.max_dca_z
    )


def high_purity_antiproton_mask(arrays, pt_threshold=0.5, nsigma_max=2.0):
    """
    Negative tracks compatible with the proton hypothesis in the TPC,
    and above ``pt_threshold`` also in the TOF.
    """
    pt = arrays["trk_pt"]
    tpc_ok = abs(arrays["trk_tpc_nsigma_pr"]) < nsigma_max
    tof_ok = _flag(arrays, "trk_has_tof") & (abs(arrays["trk_tof_nsigma_pr"]) < nsigma_max)
    return (arrays["trk_sign"] < 0) & tpc_ok & ((pt < pt_threshold) | tof_ok)


def in_window(values, low, high):
    """Open interval test used for the n-sigma windows."""
    return (values > low) & (values < high)

