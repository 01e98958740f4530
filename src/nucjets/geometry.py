"""
Jet-cone and underlying-event geometry.

Angular distances on the cyclic azimuth, the two reference axes
perpendicular to a jet, and cone membership in (eta, phi) space.
"""

import logging
import math

import numpy as np
import vector

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * np.pi

ZERO_AXIS = vector.obj(x=0.0, y=0.0, z=0.0)


def delta_phi(phi1, phi2):
    """
    Shortest azimuthal separation between two angles.

    Parameters
    ----------
    phi1, phi2 : float or array-like
        Azimuthal angles [radians], not necessarily normalized.

    Returns
    -------
    float or numpy.ndarray
        Separation in the closed range [0, pi].
    """
    a1 = np.mod(phi1, TWO_PI)
    a2 = np.mod(phi2, TWO_PI)
    diff = np.abs(a1 - a2)
    return np.where(diff > np.pi, TWO_PI - diff, diff)


def _invalid_axis(reason, **values):
    details = ", ".join(f"{k} = {v}" for k, v in values.items())
    logger.warning("Invalid input for perpendicular axis (%s): %s", reason, details)
    return ZERO_AXIS


def perpendicular_axis(px, py, pz, sign):
    """
    Direction perpendicular to a jet axis with the same pz and pt.

    The transverse part of the result satisfies u_T . p_T = -pz^2 and
    |u_T| = |p_T|, so the axis sits at the jet pseudorapidity and is
    orthogonal to the jet in three dimensions. ``sign`` (+1 or -1)
    picks one of the two solutions.

    Parameters
    ----------
    px, py, pz : float
        Jet momentum components [GeV].
    sign : int
        +1 or -1.

    Returns
    -------
    vector.VectorObject3D
        The axis, or the zero vector if no axis is defined for the input.
    """
    px2 = px * px
    py2 = py * py
    pz2 = pz * pz
    pz4 = pz2 * pz2

    # no transverse direction
    if px == 0 and py == 0:
        return ZERO_AXIS

    if px == 0:
        radicand = py2 - pz4 / py2
        if radicand < 0:
            return _invalid_axis("negative radicand", radicand=radicand)
        return vector.obj(x=sign * math.sqrt(radicand), y=-pz2 / py, z=pz)

    if py == 0:
        radicand = px2 - pz4 / px2
        if radicand < 0:
            return _invalid_axis("negative radicand", radicand=radicand)
        return vector.obj(x=-pz2 / px, y=sign * math.sqrt(radicand), z=pz)

    a = px2 + py2
    b = 2.0 * px * pz2
    c = pz4 - py2 * py2 - px2 * py2
    delta = b * b - 4.0 * a * c

    if delta < 0 or a == 0:
        return _invalid_axis("no real solution", delta=delta, a=a)

    ux = (-b + sign * math.sqrt(delta)) / (2.0 * a)
    uy = (-pz2 - px * ux) / py
    return vector.obj(x=ux, y=uy, z=pz)


def axis_eta_phi(axis):
    """(eta, phi) of an axis, or None when it has no transverse direction."""
    if axis.x == 0 and axis.y == 0:
        return None
    return float(axis.eta), float(axis.phi)


def delta_r(eta, phi, axis_eta, axis_phi):
    deta = np.asarray(eta) - axis_eta
    dphi = delta_phi(phi, axis_phi)
    return np.sqrt(deta * deta + dphi * dphi)


def in_cone(eta, phi, axis_eta, axis_phi, radius):
    """
    Cone membership in (eta, phi).

    True where sqrt(deta^2 + dphi^2) <= radius. Accepts scalars or
    arrays for the particle coordinates.
    """
    return delta_r(eta, phi, axis_eta, axis_phi) <= radius


def cone_radius(area):
    """Effective radius of a jet with the given area."""
    return math.sqrt(area / math.pi)
