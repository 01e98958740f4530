"""
Underlying-event background: density estimate and area-based subtraction.
"""

import math

import numpy as np
import vector

from nucjets.geometry import delta_phi


def estimate_rho_perp_cone(particles, jets, cone_radius=0.2):
    """
    Background densities from two cones perpendicular to the leading jet.

    The cones sit at the leading-jet pseudorapidity and at phi +- pi/2.

    Parameters
    ----------
    particles : nucjets.physics.Particles
        All particles used for jet finding.
    jets : sequence of nucjets.physics.Jet
        Jets sorted by pt; only the first one is used.
    cone_radius : float
        Radius of each perpendicular cone.

    Returns
    -------
    tuple of float
        (rho, rho_m): pt density and (mT - pt) density per unit area.
    """
    if len(jets) == 0 or len(particles) == 0:
        return 0.0, 0.0

    leading = jets[0]
    eta = particles.eta
    phi = particles.phi
    pt = particles.pt
    mt_minus_pt = np.sqrt(particles.mass**2 + pt**2) - pt

    deta = eta - leading.eta
    inside = np.zeros(len(particles), dtype=float)
    for perp_phi in (leading.phi + 0.5 * np.pi, leading.phi - 0.5 * np.pi):
        dphi = delta_phi(phi, perp_phi)
        inside += np.sqrt(deta**2 + dphi**2) <= cone_radius

    area = 2.0 * math.pi * cone_radius**2
    rho = float(np.sum(pt * inside) / area)
    rho_m = float(np.sum(mt_minus_pt * inside) / area)
    return rho, rho_m


def subtracted_pt(pt_raw, area, rho):
    """Background-subtracted jet pt, pt_raw - area * rho."""
    return pt_raw - area * rho


def subtract_four_momentum(jet_momentum, area, rho, rho_m=0.0):
    """
    Rho-area subtraction of a jet four-momentum.

    The amount removed is rho times a massless area four-vector along
    the jet direction, plus rho_m times its longitudinal and energy part.
    A jet that would be over-subtracted becomes the zero four-vector.

    Parameters
    ----------
    jet_momentum : vector.MomentumObject4D
        Unsubtracted jet.
    area : float
        Jet area.
    rho, rho_m : float
        Event background densities.

    Returns
    -------
    vector.MomentumObject4D
    """
    eta = jet_momentum.eta
    phi = jet_momentum.phi
    area_px = area * math.cos(phi)
    area_py = area * math.sin(phi)
    area_pz = area * math.sinh(eta)
    area_E = area * math.cosh(eta)

    sub_px = rho * area_px
    sub_py = rho * area_py
    sub_pz = (rho + rho_m) * area_pz
    sub_E = (rho + rho_m) * area_E

    if sub_px**2 + sub_py**2 >= jet_momentum.pt**2 or sub_E >= jet_momentum.E:
        return vector.obj(px=0.0, py=0.0, pz=0.0, E=0.0)

    return vector.obj(
        px=jet_momentum.px - sub_px,
        py=jet_momentum.py - sub_py,
        pz=jet_momentum.pz - sub_pz,
        E=jet_momentum.E - sub_E,
    )
