import logging

import numpy as np
import pytest
pytest.importorskip("uproot")
hist = pytest.importorskip("hist")
from nucjets import io


class DummyTree:
    classname = "TTree"


class DummyFileEvents:
    # Mimic a ROOT file that has an 'events' TTree

    def __init__(self):
        self._store = {"events": DummyTree()}
        self.file_path = "dummy.root"

    def keys(self):
        return list(self._store.keys())

    def __getitem__(self, key):
        return self._store[key]

    def classnames(self):
        return {}


class DummyFileUnique:
    # Mimic a ROOT file with exactly one TTree at the top level

    def __init__(self):
        self._store = {"O2tracks": DummyTree()}
        self.file_path = "unique.root"

    def keys(self):
        return list(self._store.keys())

    def __getitem__(self, key):
        return self._store[key]

    def classnames(self):
        return {name: obj.classname for name, obj in self._store.items()}


class DummyDir:
    def __init__(self, children):
        self._children = children

    def keys(self):
        return list(self._children.keys())

    def __getitem__(self, key):
        return self._children[key]


class DummyFileNested:
    # Mimic a ROOT file where the TTree lives inside a directory

    def __init__(self):
        tree = DummyTree()
        self.file_path = "nested.root"
        self._store = {
            "DF_0": DummyDir({"tracks": tree}),
            "DF_0/tracks": tree,
        }

    def keys(self):
        # Only top-level keys, like uproot
        return [k for k in self._store.keys() if "/" not in k]

    def __getitem__(self, key):
        return self._store[key]

    def classnames(self):
        return {}


class DummyFileEmpty:
    file_path = "empty.root"

    def keys(self):
        return []

    def classnames(self):
        return {}


def test_find_tree_prefers_events_key():
    assert isinstance(io._find_tree(DummyFileEvents()), DummyTree)


def test_find_tree_unique_ttree_via_classnames():
    assert isinstance(io._find_tree(DummyFileUnique()), DummyTree)


def test_find_tree_nested_directory_search():
    assert isinstance(io._find_tree(DummyFileNested()), DummyTree)


def test_find_tree_raises_without_tree():
    with pytest.raises(RuntimeError):
        io._find_tree(DummyFileEmpty())


def test_mode_branches_cover_generator_and_track_matching():
    assert "trk_mc_pdg" in io.MODE_BRANCHES["mc_rec"]
    assert "mc_px" in io.MODE_BRANCHES["mc_gen"]
    assert "trk_px" not in io.MODE_BRANCHES["mc_gen"]
    for mode in ("efficiency", "systematics_efficiency"):
        assert "mc_pdg" in io.MODE_BRANCHES[mode]
        assert "trk_mc_primary" in io.MODE_BRANCHES[mode]


def test_load_histogram_missing_file_returns_none(tmp_path, caplog):
    with caplog.at_level(logging.ERROR, logger="nucjets.io"):
        h = io.load_histogram(str(tmp_path / "missing.root"), "detectorResponseMatrix")

    assert h is None
    assert caplog.records


def test_written_response_can_be_loaded_back(tmp_path):
    response = hist.Hist(
        hist.axis.Regular(10, 0.0, 100.0, name="pt_rec"),
        hist.axis.Regular(40, -20.0, 20.0, name="delta_pt"),
    )
    response.fill(np.full(5, 25.0), np.full(5, 1.5))
    path = str(tmp_path / "response.root")

    io.write_histograms(path, {"detectorResponseMatrix": response})
    loaded = io.load_histogram(path, "detectorResponseMatrix")

    assert loaded is not None
    assert np.allclose(loaded.values(), response.values())


def test_load_histogram_rejects_missing_or_1d_object(tmp_path):
    path = str(tmp_path / "calib.root")
    io.write_histograms(path, {"counts": hist.Hist(hist.axis.Regular(4, 0, 4))})

    assert io.load_histogram(path, "counts") is None
    assert io.load_histogram(path, "detectorResponseMatrix") is None
