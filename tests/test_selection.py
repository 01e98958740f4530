import numpy as np
import pytest
ak = pytest.importorskip("awkward")
from nucjets import selection


def _good_tracks(n=3):
    # per-event track columns passing the default quality cuts
    return {
        "trk_pt": np.full(n, 1.0),
        "trk_eta": np.zeros(n),
        "trk_sign": np.full(n, -1),
        "trk_has_its": np.ones(n, dtype=bool),
        "trk_has_tpc": np.ones(n, dtype=bool),
        "trk_has_tof": np.ones(n, dtype=bool),
        "trk_pv_contributor": np.ones(n, dtype=bool),
        "trk_its_ncls": np.full(n, 6),
        "trk_its_cluster_map": np.full(n, 0b1111111),
        "trk_its_chi2ncl": np.full(n, 2.0),
        "trk_tpc_ncrossed_rows": np.full(n, 120.0),
        "trk_tpc_nfindable": np.full(n, 130.0),
        "trk_tpc_chi2ncl": np.full(n, 1.5),
        "trk_dca_xy": np.full(n, 0.001),
        "trk_dca_z": np.full(n, 0.01),
        "trk_tpc_nsigma_pr": np.full(n, 0.5),
        "trk_tof_nsigma_pr": np.full(n, 0.3),
    }


def test_event_selection_requires_sel8_and_vertex():
    arrays = ak.Array(
        {
            "sel8": [True, False, True, True],
            "pos_z": [0.0, 1.0, 10.0, -10.5],
        }
    )

    selected = selection.event_selection(arrays, z_vtx=10.0)

    # the |z| = 10 boundary is kept
    assert ak.to_list(selected["pos_z"]) == [0.0, 10.0]


def test_event_selection_accepts_integer_flags():
    arrays = ak.Array({"sel8": [1, 0], "pos_z": [0.0, 0.0]})
    assert len(selection.event_selection(arrays)) == 1


class _FixedRng:
    def __init__(self, value):
        self.value = value

    def integers(self, low, high):
        return self.value


@pytest.mark.parametrize("draw, rejected", [(0, True), (3, True), (4, False), (99, False)])
def test_should_reject_event_threshold(draw, rejected):
    assert selection.should_reject_event(_FixedRng(draw), 3) is rejected


def test_track_selection_from_config_ignores_unknown_keys():
    policy = selection.TrackSelection.from_config({"min_pt": 0.5, "not_a_cut": 1})
    assert policy.min_pt == 0.5
    assert policy.min_its_ncls == 5


def test_track_selection_variants():
    assert len(selection.SYSTEMATIC_VARIANTS) == 10

    base = selection.TrackSelection(min_pt=0.7)
    v = base.variant(3)

    assert v.min_its_ncls == 4
    assert v.min_tpc_ncrossed_rows == 110
    assert v.max_dca_xy == pytest.approx(0.03)
    assert v.max_dca_z == pytest.approx(0.075)
    # cuts outside the variation are inherited
    assert v.min_pt == 0.7


def test_quality_track_mask_on_numpy_columns():
    tracks = _good_tracks()
    tracks["trk_its_ncls"][1] = 4
    tracks["trk_has_tpc"][2] = False

    mask = selection.quality_track_mask(tracks, selection.TrackSelection())

    assert mask.tolist() == [True, False, False]


def test_quality_track_mask_pv_contributor_is_optional():
    tracks = _good_tracks(2)
    tracks["trk_pv_contributor"][0] = False

    loose = selection.quality_track_mask(tracks, selection.TrackSelection())
    strict = selection.quality_track_mask(
        tracks, selection.TrackSelection(require_pv_contributor=True)
    )

    assert loose.tolist() == [True, True]
    assert strict.tolist() == [False, True]


def test_dca_track_mask():
    tracks = _good_tracks(2)
    tracks["trk_dca_xy"][1] = -0.2
    mask = selection.dca_track_mask(tracks, selection.TrackSelection())
    assert mask.tolist() == [True, False]


def test_jet_reconstruction_track_mask_on_awkward_arrays():
    arrays = ak.Array({k: [v.tolist()] for k, v in _good_tracks(2).items()})
    # no hit in the three innermost ITS layers
    arrays = ak.with_field(arrays, ak.Array([[0b1111000, 0b0000001]]), "trk_its_cluster_map")

    mask = selection.jet_reconstruction_track_mask(arrays)

    assert ak.to_list(mask) == [[False, True]]


def test_high_purity_antiproton_needs_tof_above_threshold():
    tracks = _good_tracks(3)
    tracks["trk_pt"] = np.array([0.4, 1.0, 1.0])
    tracks["trk_has_tof"] = np.array([False, False, True])

    mask = selection.high_purity_antiproton_mask(tracks)

    assert mask.tolist() == [True, False, True]


def test_in_window_is_open():
    values = np.array([-3.0, 0.0, 3.0])
    assert selection.in_window(values, -3.0, 3.0).tolist() == [False, True, False]
