"""
Per-event jet and underlying-event analysis.

For every event the selected particles are clustered, the background
densities are estimated from cones perpendicular to the leading jet,
and each jet in the acceptance is background-subtracted, unfolded and
tested against the pt threshold. Accepted jets get two perpendicular
UE axes, and particles are classified as jet, UE-cone-1, UE-cone-2 or
none. The mode-specific fillers then turn this into histograms.
"""

import enum
import logging
import math
from dataclasses import dataclass

import numpy as np
import awkward as ak

from nucjets.background import estimate_rho_perp_cone, subtract_four_momentum
from nucjets.clustering import cluster_jets
from nucjets.geometry import (
    axis_eta_phi,
    cone_radius,
    delta_phi,
    in_cone,
    perpendicular_axis,
)
from nucjets.histograms import N_SYSTEMATICS, book_histograms
from nucjets.physics import Particles
from nucjets.selection import (
    TrackSelection,
    dca_track_mask,
    event_selection,
    high_purity_antiproton_mask,
    in_window,
    jet_reconstruction_track_mask,
    quality_track_mask,
    should_reject_event,
)
from nucjets.unfolding import PtUnfolder

logger = logging.getLogger(__name__)

PDG_CODES = {
    "antiproton": -2212,
    "antideuteron": -1000010020,
    "deuteron": 1000010020,
    "antihelium3": -1000020030,
    "helium3": 1000020030,
}
PDG_ANTIPROTON = PDG_CODES["antiproton"]

DEFAULT_JETS = {
    "r": 0.3,
    "min_pt": 10.0,
    "eta_max": 0.8,
    "delta_eta_edge": 0.05,
    "ghost_eta_max": 1.0,
}

DEFAULT_PID = {
    "min_nsigma_tpc": -3.0,
    "max_nsigma_tpc": 3.0,
    "min_nsigma_tof": -3.0,
    "max_nsigma_tof": 3.5,
}


class ConeRegion(enum.IntFlag):
    NONE = 0
    JET = 1
    UE1 = 2
    UE2 = 4


UE = ConeRegion.UE1 | ConeRegion.UE2


@dataclass
class JetRecord:
    """
    A jet inside the acceptance.

    ``selected`` tells whether the unfolded pt passed the threshold;
    cone radius and UE axes are only filled for selected jets. A UE
    axis is ``None`` when no perpendicular direction exists.
    """

    jet: object
    pt_sub: float
    pt_corrected: float
    selected: bool
    cone_radius: float = 0.0
    ue_axes: tuple = (None, None)

    @property
    def pt_raw(self):
        return self.jet.pt


def jet_settings(config):
    return {**DEFAULT_JETS, **(config.get("jets") or {})}


def classify_particles(eta, phi, tags, record):
    """
    Cone membership of particles with respect to one accepted jet.

    Parameters
    ----------
    eta, phi : numpy.ndarray
        Particle directions.
    tags : numpy.ndarray
        Particle tags, compared with the jet constituent tags.
    record : JetRecord
        A selected jet.

    Returns
    -------
    numpy.ndarray
        Integer ConeRegion flags per particle; UE1 and UE2 may both be set.
    """
    regions = np.zeros(len(tags), dtype=np.int64)
    regions[np.isin(tags, record.jet.constituents)] |= ConeRegion.JET
    for flag, axis in zip((ConeRegion.UE1, ConeRegion.UE2), record.ue_axes):
        if axis is None:
            continue
        regions[in_cone(eta, phi, axis[0], axis[1], record.cone_radius)] |= flag
    return regions


def analyze_event_jets(particles, config, unfolder=None, clusterer=cluster_jets):
    """
    Jets of one event with background subtraction, unfolding and UE axes.

    Parameters
    ----------
    particles : nucjets.physics.Particles
        Particles used for jet finding.
    config : dict
        Analysis configuration (``jets`` and ``background`` sections).
    unfolder : PtUnfolder or None
        Maps the subtracted pt before thresholding; None skips unfolding.
    clusterer : callable
        ``clusterer(particles, jet_r, ghost_eta_max)`` returning pt-sorted jets.

    Returns
    -------
    records : list of JetRecord
        One record per jet inside the acceptance.
    n_found : int
        Number of jets found before any jet selection.
    """
    jets_cfg = jet_settings(config)
    jet_r = jets_cfg["r"]
    max_abs_eta = jets_cfg["eta_max"] - jets_cfg["delta_eta_edge"]
    perp_radius = (config.get("background") or {}).get("cone_radius", 0.2)

    if len(particles) == 0:
        return [], 0

    jets = clusterer(particles, jet_r, jets_cfg["ghost_eta_max"])
    rho, rho_m = estimate_rho_perp_cone(particles, jets, perp_radius)

    records = []
    for jet in jets:
        # jet fully contained in the acceptance
        if abs(jet.eta) + jet_r > max_abs_eta:
            continue

        pt_sub = subtract_four_momentum(jet.momentum, jet.area, rho, rho_m).pt
        pt_corrected = unfolder.corrected_pt(pt_sub) if unfolder is not None else pt_sub
        record = JetRecord(jet, pt_sub, pt_corrected, pt_corrected >= jets_cfg["min_pt"])
        records.append(record)
        if not record.selected:
            continue

        record.cone_radius = cone_radius(jet.area)
        record.ue_axes = tuple(
            axis_eta_phi(perpendicular_axis(jet.px, jet.py, jet.pz, sign))
            for sign in (+1, -1)
        )

    return records, len(jets)


def _event_columns(arrays, index, names):
    return {name: ak.to_numpy(arrays[name][index]) for name in names}


def _track_particles(event):
    mask = np.asarray(jet_reconstruction_track_mask(event), dtype=bool)
    tags = np.nonzero(mask)[0]
    return Particles.from_momenta(
        event["trk_px"][mask], event["trk_py"][mask], event["trk_pz"][mask], tags
    )


def _generated_particles(event, policy):
    everything = Particles.from_momenta(
        event["mc_px"], event["mc_py"], event["mc_pz"], np.arange(len(event["mc_px"]))
    )
    eta = everything.eta
    mask = (
        (event["mc_primary"] != 0)
        & (eta >= policy.min_eta)
        & (eta <= policy.max_eta)
        & (everything.pt >= 0.1)
    )
    return Particles(momenta=everything.momenta[mask], tags=everything.tags[mask])


def _track_regions(event, record):
    n = len(event["trk_pt"])
    return classify_particles(event["trk_eta"], event["trk_phi"], np.arange(n), record)


def _fill_nuclei(h, event, mask, region, policy, pid):
    pt = event["trk_pt"]
    sign = event["trk_sign"]
    has_tof = (event["trk_has_tof"] != 0)

    # DCA templates before the DCA cut
    antip_dca = (
        mask
        & high_purity_antiproton_mask(event)
        & (np.abs(event["trk_dca_z"]) < policy.max_dca_z)
    )
    h[f"antiproton_dca_{region}"].fill(pt[antip_dca], event["trk_dca_xy"][antip_dca])

    selected = mask & dca_track_mask(event, policy)
    anti = selected & (sign < 0)
    matter = selected & (sign > 0)

    for species, key in (("antiproton", "pr"), ("antideuteron", "de")):
        nsigma_tpc = event[f"trk_tpc_nsigma_{key}"]
        nsigma_tof = event[f"trk_tof_nsigma_{key}"]
        h[f"{species}_{region}_tpc"].fill(pt[anti], nsigma_tpc[anti])
        with_tof = anti & in_window(nsigma_tpc, pid["min_nsigma_tpc"], pid["max_nsigma_tpc"]) & has_tof
        h[f"{species}_{region}_tof"].fill(pt[with_tof], nsigma_tof[with_tof])

    nsigma_tpc_de = event["trk_tpc_nsigma_de"]
    deuteron = matter & in_window(nsigma_tpc_de, pid["min_nsigma_tpc"], pid["max_nsigma_tpc"]) & has_tof
    h[f"deuteron_{region}_tof"].fill(pt[deuteron], event["trk_tof_nsigma_de"][deuteron])

    # helium-3 carries charge 2: rigidity to momentum
    nsigma_he = event["trk_tpc_nsigma_he"]
    h[f"antihelium3_{region}_tpc"].fill(2.0 * pt[anti], nsigma_he[anti])
    h[f"helium3_{region}_tpc"].fill(2.0 * pt[matter], nsigma_he[matter])


def fill_data(h, event, records, n_found, particles, policy, settings):
    pid = settings["pid"]
    quality = np.asarray(quality_track_mask(event, policy), dtype=bool)
    for record in records:
        if not record.selected:
            continue
        regions = _track_regions(event, record)
        _fill_nuclei(h, event, quality & ((regions & ConeRegion.JET) != 0), "jet", policy, pid)
        _fill_nuclei(h, event, quality & ((regions & UE) != 0), "ue", policy, pid)


def fill_systematics(h, event, records, n_found, particles, policy, settings):
    pid = settings["pid"]
    pt = event["trk_pt"]
    anti = event["trk_sign"] < 0
    has_tof = (event["trk_has_tof"] != 0)
    variants = [policy.variant(i) for i in range(N_SYSTEMATICS)]

    for record in records:
        if not record.selected:
            continue
        in_jet = (_track_regions(event, record) & ConeRegion.JET) != 0
        for i, variant in enumerate(variants):
            selected = (
                in_jet
                & anti
                & np.asarray(quality_track_mask(event, variant), dtype=bool)
                & dca_track_mask(event, variant)
            )
            for species, key in (("antiproton", "pr"), ("antideuteron", "de")):
                nsigma_tpc = event[f"trk_tpc_nsigma_{key}"]
                h[f"{species}_tpc_syst"].fill(
                    pt[selected], nsigma_tpc[selected], np.full(selected.sum(), i)
                )
                with_tof = selected & in_window(nsigma_tpc, pid["min_nsigma_tpc"], pid["max_nsigma_tpc"]) & has_tof
                h[f"{species}_tof_syst"].fill(
                    pt[with_tof], event[f"trk_tof_nsigma_{key}"][with_tof], np.full(with_tof.sum(), i)
                )


def fill_qc(h, event, records, n_found, particles, policy, settings):
    jet_r = settings["jets"]["r"]
    eta = particles.eta
    phi = particles.phi
    pt = particles.pt
    n_selected = 0

    for record in records:
        jet = record.jet
        h["sumPtJetCone"].fill(jet.pt)
        h["jetPtDifference"].fill(record.pt_sub - jet.pt)
        if not record.selected:
            continue
        n_selected += 1

        h["sumPtJet"].fill(jet.pt)
        h["jetEffectiveArea"].fill(jet.area / (math.pi * jet_r**2))
        h["NchJetCone"].fill(len(jet.constituents))

        regions = classify_particles(eta, phi, particles.tags, record)
        in_jet = (regions & ConeRegion.JET) != 0
        h["deltaEta_deltaPhi_jet"].fill(eta[in_jet] - jet.eta, delta_phi(phi[in_jet], jet.phi))
        h["eta_phi_jet"].fill(eta[in_jet], np.mod(phi[in_jet], 2 * np.pi))

        in_ue = (regions & UE) != 0
        for axis in record.ue_axes:
            if axis is None:
                continue
            h["deltaEta_deltaPhi_ue"].fill(eta[in_ue] - axis[0], delta_phi(phi[in_ue], axis[1]))
        h["eta_phi_ue"].fill(eta[in_ue], np.mod(phi[in_ue], 2 * np.pi))

        # each UE cone has the jet area: half of the two-cone sum
        n_ue = in_ue.sum()
        h["NchUE"].fill(0.5 * n_ue)
        h["NchJet"].fill(len(jet.constituents) - 0.5 * n_ue)
        h["sumPtUE"].fill(0.5 * pt[in_ue].sum())

    h["nJetsFound"].fill(n_found)
    h["nJetsInAcceptance"].fill(len(records))
    h["nJetsSelectedHighPt"].fill(n_selected)


def fill_mc_rec(h, event, records, n_found, particles, policy, settings):
    pid = settings["pid"]
    pt = event["trk_pt"]
    has_mc = (event["trk_has_mc"] != 0)
    mc_pt = event["trk_mc_pt"]
    tpc_ok = in_window(event["trk_tpc_nsigma_pr"], pid["min_nsigma_tpc"], pid["max_nsigma_tpc"])
    tof_ok = (event["trk_has_tof"] != 0) & in_window(
        event["trk_tof_nsigma_pr"], pid["min_nsigma_tof"], pid["max_nsigma_tof"]
    )
    antiprotons = (
        np.asarray(quality_track_mask(event, policy), dtype=bool)
        & dca_track_mask(event, policy)
        & (event["trk_sign"] < 0)
        & has_mc
        & (event["trk_mc_pdg"] == PDG_ANTIPROTON)
    )
    primary = antiprotons & (event["trk_mc_primary"] != 0)

    for record in records:
        jet = record.jet
        constituents = np.asarray(jet.constituents, dtype=np.int64)
        matched = constituents[has_mc[constituents]]
        pt_gen = mc_pt[matched].sum()
        h["detectorResponseMatrix"].fill(jet.pt, pt_gen - jet.pt)
        if not record.selected:
            continue

        regions = _track_regions(event, record)
        for region, in_region in (
            ("jet", (regions & ConeRegion.JET) != 0),
            ("ue", (regions & UE) != 0),
        ):
            h[f"antiproton_{region}_all"].fill(pt[antiprotons & in_region])
            prim = primary & in_region
            h[f"antiproton_{region}_prim"].fill(pt[prim])
            h[f"antiproton_{region}_rec_tpc"].fill(pt[prim & tpc_ok])
            h[f"antiproton_{region}_rec_tof"].fill(pt[prim & tpc_ok & tof_ok])


def fill_mc_gen(h, event, records, n_found, particles, policy, settings):
    pdg = event["mc_pdg"][particles.tags]
    antiproton = pdg == PDG_ANTIPROTON
    pt = particles.pt
    eta = particles.eta

    for record in records:
        if not record.selected:
            continue
        regions = classify_particles(eta, particles.phi, particles.tags, record)
        for region, in_region in (
            ("jet", (regions & ConeRegion.JET) != 0),
            ("ue", (regions & UE) != 0),
        ):
            sel = antiproton & in_region
            h[f"antiproton_{region}_gen"].fill(pt[sel])
            h[f"antiproton_eta_pt_{region}"].fill(pt[sel], eta[sel])


def _generated_primaries(event):
    generated = Particles.from_momenta(
        event["mc_px"], event["mc_py"], event["mc_pz"], np.arange(len(event["mc_px"]))
    )
    primary = event["mc_primary"] != 0
    return generated.pt[primary], generated.eta[primary], event["mc_pdg"][primary]


def _identified(event, key, pid):
    """TPC and TPC+TOF n-sigma windows for the ``key`` mass hypothesis."""
    tpc = in_window(event[f"trk_tpc_nsigma_{key}"], pid["min_nsigma_tpc"], pid["max_nsigma_tpc"])
    tof = (
        tpc
        & (event["trk_has_tof"] != 0)
        & in_window(event[f"trk_tof_nsigma_{key}"], pid["min_nsigma_tof"], pid["max_nsigma_tof"])
    )
    return tpc, tof


def fill_efficiency(h, event, policy, pid):
    """
    Inclusive generated and reconstructed spectra for the efficiency.

    Generated particles are physical primaries inside the track eta
    range. Reconstructed tracks pass the quality and DCA cuts and need
    an MC match; the PDG code of the match sets the species.
    """
    pt, eta, pdg = _generated_primaries(event)
    antiproton = pdg == PDG_CODES["antiproton"]
    h["antiproton_eta_pt_pythia"].fill(pt[antiproton], eta[antiproton])

    in_eta = (eta >= policy.min_eta) & (eta <= policy.max_eta)
    for species, code in PDG_CODES.items():
        sel = in_eta & (pdg == code)
        h[f"{species}_incl_gen"].fill(pt[sel])

    trk_pt = event["trk_pt"]
    trk_pdg = event["trk_mc_pdg"]
    selected = (
        np.asarray(quality_track_mask(event, policy), dtype=bool)
        & dca_track_mask(event, policy)
        & (event["trk_has_mc"] != 0)
    )
    h["antiproton_incl_all"].fill(trk_pt[selected & (trk_pdg == PDG_ANTIPROTON)])

    primary = selected & (event["trk_mc_primary"] != 0)
    h["antiproton_incl_prim"].fill(trk_pt[primary & (trk_pdg == PDG_ANTIPROTON)])

    for species, key in (("antiproton", "pr"), ("antideuteron", "de"), ("deuteron", "de")):
        tpc, tof = _identified(event, key, pid)
        matched = primary & (trk_pdg == PDG_CODES[species])
        h[f"{species}_incl_rec_tpc"].fill(trk_pt[matched & tpc])
        h[f"{species}_incl_rec_tof"].fill(trk_pt[matched & tof])

    # helium-3 carries charge 2: rigidity to momentum
    tpc_he = in_window(event["trk_tpc_nsigma_he"], pid["min_nsigma_tpc"], pid["max_nsigma_tpc"])
    for species in ("antihelium3", "helium3"):
        matched = primary & tpc_he & (trk_pdg == PDG_CODES[species])
        h[f"{species}_incl_rec_tpc"].fill(2.0 * trk_pt[matched])


def fill_systematics_efficiency(h, event, policy, pid):
    pt, eta, pdg = _generated_primaries(event)
    in_eta = (eta >= policy.min_eta) & (eta <= policy.max_eta)
    for species in ("antiproton", "antideuteron"):
        sel = in_eta & (pdg == PDG_CODES[species])
        h[f"{species}_incl_gen_syst"].fill(pt[sel])

    trk_pt = event["trk_pt"]
    trk_pdg = event["trk_mc_pdg"]
    matched = (event["trk_has_mc"] != 0) & (event["trk_mc_primary"] != 0)
    identified = {
        species: _identified(event, key, pid)
        for species, key in (("antiproton", "pr"), ("antideuteron", "de"))
    }

    for i in range(N_SYSTEMATICS):
        variant = policy.variant(i)
        selected = (
            matched
            & np.asarray(quality_track_mask(event, variant), dtype=bool)
            & dca_track_mask(event, variant)
        )
        antiprotons = selected & (trk_pdg == PDG_ANTIPROTON)
        h["antiproton_incl_prim_syst"].fill(trk_pt[antiprotons], np.full(antiprotons.sum(), i))

        for species, (tpc, tof) in identified.items():
            sel = selected & (trk_pdg == PDG_CODES[species])
            for detector, window in (("tpc", tpc), ("tof", tof)):
                passed = sel & window
                h[f"{species}_incl_rec_{detector}_syst"].fill(
                    trk_pt[passed], np.full(passed.sum(), i)
                )



FILLERS = {
    "data": fill_data,
    "qc": fill_qc,
    "systematics": fill_systematics,
    "mc_rec": fill_mc_rec,
    "mc_gen": fill_mc_gen,
}

# track-level modes without jet finding
INCLUSIVE_FILLERS = {
    "efficiency": fill_efficiency,
    "systematics_efficiency": fill_systematics_efficiency,
}

EVENT_COUNTERS = {
    "data": "number_of_events_data",
    "mc_rec": "number_of_events_mc",
    "efficiency": "number_of_events_mc",
}

REJECTION_COUNTERS = {
    "data": "number_of_rejected_events",
    "systematics": "number_of_rejected_events_syst",
}

# generator-level jets are never unfolded
UNFOLDED_MODES = ("data", "qc", "systematics", "mc_rec")


def process_events(arrays, config, mode, rng, response=None, clusterer=cluster_jets):
    """
    Run one analysis mode over the events of a file.

    Parameters
    ----------
    arrays : awkward.Array
        Events with the branches required by ``mode``.
    config : dict
        Analysis configuration.
    mode : str
        One of ``FILLERS`` or ``INCLUSIVE_FILLERS``.
    rng : numpy.random.Generator
        Random source for event rejection and pt unfolding; owned by the caller.
    response : hist.Hist or None
        Detector response matrix for pt unfolding.
    clusterer : callable
        Jet clustering collaborator.

    Returns
    -------
    hists : dict of str -> hist.Hist
    info : dict
        Event counts at each stage.
    """
    hists = book_histograms(mode)
    filler = FILLERS.get(mode)
    inclusive = INCLUSIVE_FILLERS.get(mode)
    policy = TrackSelection.from_config(config.get("tracks"))
    settings = {
        "pid": {**DEFAULT_PID, **(config.get("pid") or {})},
        "jets": jet_settings(config),
    }
    event_cfg = config.get("event") or {}
    counter = hists.get(EVENT_COUNTERS.get(mode))

    info = {
        "n_events": len(arrays),
        "n_selected": 0,
        "n_with_particles": 0,
        "n_with_jets": 0,
    }

    if event_cfg.get("reject_events", False) and mode in REJECTION_COUNTERS:
        rejection = hists[REJECTION_COUNTERS[mode]]
        percentage = event_cfg.get("rejection_percentage", 3)
        keep = np.array(
            [not should_reject_event(rng, percentage) for _ in range(len(arrays))],
            dtype=bool,
        )
        rejection.fill(np.full(len(arrays), 0.5))
        rejection.fill(np.full(int(keep.sum()), 1.5))
        arrays = arrays[keep]

    if counter is not None:
        counter.fill(np.full(len(arrays), 0.5))

    arrays = event_selection(arrays, event_cfg.get("z_vtx", 10.0))
    info["n_selected"] = len(arrays)
    if counter is not None:
        counter.fill(np.full(len(arrays), 1.5))

    unfolder = None
    if mode in UNFOLDED_MODES and (config.get("unfolding") or {}).get("apply", False):
        unfolder = PtUnfolder(response, rng)

    names = [f for f in arrays.fields if f not in ("sel8", "pos_z")]
    for i in range(len(arrays)):
        event = _event_columns(arrays, i, names)
        if inclusive is not None:
            inclusive(hists, event, policy, settings["pid"])
            continue

        if mode == "mc_gen":
            particles = _generated_particles(event, policy)
        else:
            particles = _track_particles(event)

        # empty events are counted, not analyzed
        if len(particles) == 0:
            continue
        info["n_with_particles"] += 1
        if counter is not None:
            counter.fill(2.5)

        records, n_found = analyze_event_jets(particles, config, unfolder, clusterer)
        filler(hists, event, records, n_found, particles, policy, settings)

        if any(r.selected for r in records):
            info["n_with_jets"] += 1
            if counter is not None:
                counter.fill(3.5)

    logger.debug("Processed %d events in mode %s: %s", info["n_events"], mode, info)
    return hists, info
