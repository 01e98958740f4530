import numpy as np
import pytest
pytest.importorskip("vector")
pytest.importorskip("fastjet")
from nucjets.clustering import cluster_jets
from nucjets.physics import Particles


def test_back_to_back_particles_make_two_jets():
    particles = Particles.from_momenta([10.0, -8.0], [0.0, 0.0], [0.0, 0.0], [3, 7])

    jets = cluster_jets(particles, 0.4)

    assert len(jets) == 2
    # sorted by pt, tags carried through
    assert jets[0].pt == pytest.approx(10.0)
    assert jets[0].constituents == (3,)
    assert jets[1].constituents == (7,)
    assert all(j.area > 0 for j in jets)


def test_collinear_particles_are_merged():
    particles = Particles.from_momenta([5.0, 4.0], [0.0, 0.4], [0.0, 0.0], [0, 1])

    jets = cluster_jets(particles, 0.4)

    assert len(jets) == 1
    assert sorted(jets[0].constituents) == [0, 1]
    assert jets[0].pt == pytest.approx(np.hypot(9.0, 0.4))


def test_no_particles_no_jets():
    assert cluster_jets(Particles.from_momenta([], [], [], []), 0.4) == []
