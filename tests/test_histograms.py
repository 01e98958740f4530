import numpy as np
import pytest
pytest.importorskip("hist")
from nucjets import histograms


@pytest.mark.parametrize("mode", sorted(histograms.BOOKERS))
def test_every_mode_books_empty_histograms(mode):
    hists = histograms.book_histograms(mode)
    assert hists
    assert all(h.values().sum() == 0 for h in hists.values())


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        histograms.book_histograms("nonsense")


def test_nuclei_pt_ranges_scale_with_mass_number():
    h = histograms.book_histograms("data")
    assert h["antiproton_jet_tpc"].axes[0].edges[-1] == pytest.approx(6.0)
    assert h["antideuteron_jet_tpc"].axes[0].edges[-1] == pytest.approx(12.0)
    assert h["antihelium3_ue_tpc"].axes[0].edges[-1] == pytest.approx(18.0)


def test_efficiency_histograms_and_counters():
    eff = histograms.book_histograms("efficiency")
    assert "helium3_incl_rec_tpc" in eff
    # helium-3 has no TOF efficiency
    assert "helium3_incl_rec_tof" not in eff
    assert "number_of_events_mc" in eff
    assert "number_of_events_mc" not in histograms.book_histograms("mc_gen")

    syst = histograms.book_histograms("systematics_efficiency")
    assert syst["antideuteron_incl_rec_tof_syst"].axes["variant"].size == 10


def test_merge_histograms_sums_bin_by_bin():
    a = histograms.book_histograms("mc_gen")
    b = histograms.book_histograms("mc_gen")
    a["antiproton_jet_gen"].fill([1.0, 2.0])
    b["antiproton_jet_gen"].fill([1.0])

    merged = histograms.merge_histograms([a, b])

    assert merged["antiproton_jet_gen"].values().sum() == 3
    # inputs are left untouched
    assert a["antiproton_jet_gen"].values().sum() == 2


def test_merge_of_nothing_is_empty():
    assert histograms.merge_histograms([]) == {}
