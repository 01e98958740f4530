"""
Histogram booking for each analysis mode.
"""

import numpy as np
import hist
from hist import Hist

PT_NBINS = 120
PT_MAX = 6.0
N_SYSTEMATICS = 10

# pt range scale per species: pt of nuclei scales with the mass number
SPECIES_SCALE = {
    "antiproton": 1,
    "antideuteron": 2,
    "deuteron": 2,
    "antihelium3": 3,
    "helium3": 3,
}


def pt_axis(scale=1, nbins=PT_NBINS):
    return hist.axis.Regular(nbins, 0.0, PT_MAX * scale, name="pt", label=r"$p_T$ [GeV]")


def nsigma_axis(detector):
    return hist.axis.Regular(400, -20.0, 20.0, name="nsigma", label=rf"$n\sigma_{{{detector}}}$")


def counter():
    return Hist(hist.axis.Regular(10, 0, 10, name="counter"))


def variant_axis():
    return hist.axis.Integer(0, N_SYSTEMATICS, name="variant")


def _book_data():
    h = {
        "number_of_events_data": counter(),
        "number_of_rejected_events": counter(),
        "antiproton_dca_jet": Hist(pt_axis(), hist.axis.Regular(200, -0.5, 0.5, name="dca_xy")),
        "antiproton_dca_ue": Hist(pt_axis(), hist.axis.Regular(200, -0.5, 0.5, name="dca_xy")),
    }
    for region in ("jet", "ue"):
        for species in ("antiproton", "antideuteron"):
            scale = SPECIES_SCALE[species]
            h[f"{species}_{region}_tpc"] = Hist(pt_axis(scale), nsigma_axis("TPC"))
            h[f"{species}_{region}_tof"] = Hist(pt_axis(scale), nsigma_axis("TOF"))
        h[f"deuteron_{region}_tof"] = Hist(pt_axis(2), nsigma_axis("TOF"))
        h[f"antihelium3_{region}_tpc"] = Hist(pt_axis(3), nsigma_axis("TPC"))
        h[f"helium3_{region}_tpc"] = Hist(pt_axis(3), nsigma_axis("TPC"))
    return h


def _book_qc():
    deta = hist.axis.Regular(200, -0.5, 0.5, name="deta")
    dphi = hist.axis.Regular(200, 0, 0.5 * np.pi, name="dphi")
    eta = hist.axis.Regular(200, -0.5, 0.5, name="eta")
    phi = hist.axis.Regular(200, 0, 2 * np.pi, name="phi")
    nch = hist.axis.Regular(100, 0, 100, name="nch")
    sum_pt = hist.axis.Regular(500, 0, 50, name="sum_pt")
    njets = hist.axis.Regular(50, 0, 50, name="njets")
    return {
        "deltaEta_deltaPhi_jet": Hist(deta, dphi),
        "deltaEta_deltaPhi_ue": Hist(deta, dphi),
        "eta_phi_jet": Hist(eta, phi),
        "eta_phi_ue": Hist(eta, phi),
        "NchJetCone": Hist(nch),
        "NchJet": Hist(nch),
        "NchUE": Hist(nch),
        "sumPtJetCone": Hist(sum_pt),
        "sumPtJet": Hist(sum_pt),
        "sumPtUE": Hist(sum_pt),
        "nJetsFound": Hist(njets),
        "nJetsInAcceptance": Hist(njets),
        "nJetsSelectedHighPt": Hist(njets),
        "jetEffectiveArea": Hist(hist.axis.Regular(2000, 0, 2, name="area_fraction")),
        "jetPtDifference": Hist(hist.axis.Regular(200, -1, 1, name="dpt")),
    }


def _book_systematics():
    variant = variant_axis()
    return {
        "number_of_rejected_events_syst": counter(),
        "antiproton_tpc_syst": Hist(pt_axis(1), nsigma_axis("TPC"), variant),
        "antiproton_tof_syst": Hist(pt_axis(1), nsigma_axis("TOF"), variant),
        "antideuteron_tpc_syst": Hist(pt_axis(2), nsigma_axis("TPC"), variant),
        "antideuteron_tof_syst": Hist(pt_axis(2), nsigma_axis("TOF"), variant),
    }


def _book_mc_rec():
    h = {
        "number_of_events_mc": counter(),
        "detectorResponseMatrix": Hist(
            hist.axis.Regular(1000, 0.0, 100.0, name="pt_rec", label=r"$p_T^{rec}$ [GeV]"),
            hist.axis.Regular(2000, -20.0, 20.0, name="delta_pt", label=r"$p_T^{gen} - p_T^{rec}$ [GeV]"),
        ),
    }
    for region in ("jet", "ue"):
        for name in ("prim", "all", "rec_tpc", "rec_tof"):
            h[f"antiproton_{region}_{name}"] = Hist(pt_axis())
    return h


def _book_mc_gen():
    h = {}
    for region in ("jet", "ue"):
        h[f"antiproton_{region}_gen"] = Hist(pt_axis())
        h[f"antiproton_eta_pt_{region}"] = Hist(
            hist.axis.Regular(200, 0.0, 10.0, name="pt"),
            hist.axis.Regular(20, -1.0, 1.0, name="eta"),
        )
    return h


def _book_efficiency():
    h = {
        "number_of_events_mc": counter(),
        "antiproton_eta_pt_pythia": Hist(
            hist.axis.Regular(200, 0.0, 10.0, name="pt"),
            hist.axis.Regular(20, -1.0, 1.0, name="eta"),
        ),
        "antiproton_incl_all": Hist(pt_axis()),
        "antiproton_incl_prim": Hist(pt_axis()),
    }
    for species, scale in SPECIES_SCALE.items():
        h[f"{species}_incl_gen"] = Hist(pt_axis(scale))
        h[f"{species}_incl_rec_tpc"] = Hist(pt_axis(scale))
    # helium-3 is identified in the TPC only
    for species in ("antiproton", "antideuteron", "deuteron"):
        h[f"{species}_incl_rec_tof"] = Hist(pt_axis(SPECIES_SCALE[species]))
    return h


def _book_systematics_efficiency():
    h = {
        "antiproton_incl_gen_syst": Hist(pt_axis(1)),
        "antideuteron_incl_gen_syst": Hist(pt_axis(2)),
        "antiproton_incl_prim_syst": Hist(pt_axis(1), variant_axis()),
    }
    for species in ("antiproton", "antideuteron"):
        for detector in ("tpc", "tof"):
            h[f"{species}_incl_rec_{detector}_syst"] = Hist(
                pt_axis(SPECIES_SCALE[species]), variant_axis()
            )
    return h


BOOKERS = {
    "data": _book_data,
    "qc": _book_qc,
    "systematics": _book_systematics,
    "mc_rec": _book_mc_rec,
    "mc_gen": _book_mc_gen,
    "efficiency": _book_efficiency,
    "systematics_efficiency": _book_systematics_efficiency,
}


def book_histograms(mode):
    """Fresh, empty histograms for an analysis mode."""
    if mode not in BOOKERS:
        raise ValueError(f"Unknown analysis mode {mode!r}; expected one of {sorted(BOOKERS)}")
    return BOOKERS[mode]()


def merge_histograms(results):
    """Bin-by-bin sum of a sequence of histogram dicts with the same keys."""
    results = list(results)
    if not results:
        return {}
    total = {name: h.copy() for name, h in results[0].items()}
    for hists in results[1:]:
        for name, h in hists.items():
            total[name] += h
    return total
