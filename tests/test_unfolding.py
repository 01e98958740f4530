import logging

import numpy as np
import pytest
hist = pytest.importorskip("hist")
from nucjets.unfolding import PtUnfolder, sample_from_bins


def _response():
    return hist.Hist(
        hist.axis.Regular(10, 0.0, 100.0, name="pt_rec"),
        hist.axis.Regular(40, -20.0, 20.0, name="delta_pt"),
    )


def test_missing_response_passes_through_and_logs_once(caplog):
    unfolder = PtUnfolder(None, np.random.default_rng(0))

    with caplog.at_level(logging.WARNING, logger="nucjets.unfolding"):
        assert unfolder.corrected_pt(42.0) == 42.0
        assert unfolder.corrected_pt(17.5) == 17.5

    assert len(caplog.records) == 1


@pytest.mark.parametrize("pt", [-5.0, 100.0, 150.0])
def test_pt_outside_response_axis_is_unchanged(pt):
    h = _response()
    h.fill(np.full(10, 25.0), np.full(10, 1.5))
    unfolder = PtUnfolder(h, np.random.default_rng(0))
    assert unfolder.corrected_pt(pt) == pt


def test_empty_response_slice_is_unchanged():
    h = _response()
    h.fill([75.0], [1.5])
    unfolder = PtUnfolder(h, np.random.default_rng(0))
    assert unfolder.corrected_pt(25.0) == 25.0


def test_offset_drawn_from_the_matching_slice():
    h = _response()
    h.fill(np.full(50, 25.0), np.full(50, 3.2))
    # a different slice must not leak in
    h.fill(np.full(50, 55.0), np.full(50, -10.0))
    unfolder = PtUnfolder(h, np.random.default_rng(3))

    for _ in range(20):
        out = unfolder.corrected_pt(25.0)
        assert 28.0 <= out <= 29.0


def test_seeded_unfolding_is_reproducible():
    h = _response()
    h.fill(np.full(100, 45.0), np.linspace(-5.0, 5.0, 100))

    a = PtUnfolder(h, np.random.default_rng(7))
    b = PtUnfolder(h, np.random.default_rng(7))

    first = [a.corrected_pt(45.0) for _ in range(5)]
    second = [b.corrected_pt(45.0) for _ in range(5)]
    assert first == second


def test_sample_from_bins_only_picks_filled_bins():
    rng = np.random.default_rng(11)
    edges = np.array([0.0, 1.0, 2.0, 3.0])
    draws = [sample_from_bins([0.0, 4.0, 0.0], edges, rng) for _ in range(100)]
    assert all(1.0 <= x <= 2.0 for x in draws)


def test_sample_from_bins_follows_bin_weights():
    rng = np.random.default_rng(5)
    edges = np.array([0.0, 1.0, 2.0])
    draws = np.array([sample_from_bins([1.0, 3.0], edges, rng) for _ in range(4000)])
    assert np.mean(draws >= 1.0) == pytest.approx(0.75, abs=0.03)
