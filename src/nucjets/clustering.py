"""
Jet clustering through the fastjet bindings.

Particles go in as PseudoJets carrying their tag in ``user_index``;
jets come back as :class:`nucjets.physics.Jet` records sorted by pt.
"""

import fastjet as fj

from nucjets.physics import Jet


def cluster_jets(particles, jet_r, ghost_eta_max=1.0):
    """
    Anti-kt jets with active area.

    Parameters
    ----------
    particles : nucjets.physics.Particles
        Selected particles of the event.
    jet_r : float
        Jet resolution parameter R.
    ghost_eta_max : float
        Maximum |eta| of the ghosts used for the area determination.

    Returns
    -------
    list of Jet
        Jets sorted by decreasing pt.
    """
    if len(particles) == 0:
        return []

    momenta = particles.momenta
    pseudojets = []
    for px, py, pz, E, tag in zip(
        momenta.px, momenta.py, momenta.pz, momenta.E, particles.tags
    ):
        pj = fj.PseudoJet(float(px), float(py), float(pz), float(E))
        pj.set_user_index(int(tag))
        pseudojets.append(pj)

    jet_def = fj.JetDefinition(fj.antikt_algorithm, jet_r)
    area_def = fj.AreaDefinition(fj.active_area, fj.GhostedAreaSpec(ghost_eta_max))
    cs = fj.ClusterSequenceArea(pseudojets, jet_def, area_def)
    jets = fj.sorted_by_pt(cs.inclusive_jets())

    # the cluster sequence must outlive the calls to area() and constituents();
    # ghosts carry the default user index -1
    return [
        Jet.from_components(
            j.px(), j.py(), j.pz(), j.E(),
            j.area(),
            [c.user_index() for c in j.constituents() if c.user_index() >= 0],
        )
        for j in jets
    ]
