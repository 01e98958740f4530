"""
Particle and jet containers used by the jet analysis.

Four-momenta are kept as ``vector`` objects so that pt, eta and phi
are derived on demand from (px, py, pz, E).
"""

from dataclasses import dataclass

import numpy as np
import vector

# charged pion mass [GeV], assigned to every track used for jet finding
MASS_PION_CHARGED = 0.13957039


def track_energy(px, py, pz, mass=MASS_PION_CHARGED):
    """
    Energy of tracks under a mass hypothesis, E = sqrt(p^2 + m^2).

    Parameters
    ----------
    px, py, pz : array-like
        Momentum components [GeV].
    mass : float
        Mass hypothesis [GeV].

    Returns
    -------
    numpy.ndarray
        Energies with the same shape as the inputs.
    """
    px = np.asarray(px, dtype=float)
    py = np.asarray(py, dtype=float)
    pz = np.asarray(pz, dtype=float)
    return np.sqrt(px**2 + py**2 + pz**2 + mass**2)


@dataclass(frozen=True)
class Particles:
    """
    Selected particles of one event.

    ``tags`` holds, per particle, the index of the track (or generator
    record) it was built from.
    """

    momenta: vector.MomentumNumpy4D
    tags: np.ndarray

    @classmethod
    def from_momenta(cls, px, py, pz, tags, mass=MASS_PION_CHARGED):
        px = np.asarray(px, dtype=float)
        py = np.asarray(py, dtype=float)
        pz = np.asarray(pz, dtype=float)
        momenta = vector.array(
            {"px": px, "py": py, "pz": pz, "E": track_energy(px, py, pz, mass)}
        )
        return cls(momenta=momenta, tags=np.asarray(tags, dtype=np.int64))

    def __len__(self):
        return len(self.tags)

    @property
    def pt(self):
        return np.asarray(self.momenta.pt)

    @property
    def eta(self):
        return np.asarray(self.momenta.eta)

    @property
    def phi(self):
        return np.asarray(self.momenta.phi)

    @property
    def mass(self):
        return np.asarray(self.momenta.mass)


@dataclass(frozen=True)
class Jet:
    """A clustered jet: four-momentum, area and constituent tags."""

    momentum: vector.MomentumObject4D
    area: float
    constituents: tuple

    @classmethod
    def from_components(cls, px, py, pz, E, area, constituents):
        return cls(
            momentum=vector.obj(px=float(px), py=float(py), pz=float(pz), E=float(E)),
            area=float(area),
            constituents=tuple(int(c) for c in constituents),
        )

    @property
    def px(self):
        return self.momentum.px

    @property
    def py(self):
        return self.momentum.py

    @property
    def pz(self):
        return self.momentum.pz

    @property
    def pt(self):
        return self.momentum.pt

    @property
    def eta(self):
        return self.momentum.eta

    @property
    def phi(self):
        return self.momentum.phi
