"""
Jet pt unfolding through a detector response matrix.

The response is a 2D histogram of (pt_rec, pt_gen - pt_rec). For a
reconstructed pt, an offset is drawn from the matching pt_rec slice
and added back.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)


def sample_from_bins(counts, edges, rng):
    """
    Draw one value from a binned distribution.

    A bin is picked from the cumulative integral and the value is then
    placed uniformly inside it.

    Parameters
    ----------
    counts : numpy.ndarray
        Non-negative bin contents.
    edges : numpy.ndarray
        Bin edges, one more than ``counts``.
    rng : numpy.random.Generator
        Random source.

    Returns
    -------
    float
    """
    counts = np.asarray(counts, dtype=float)
    edges = np.asarray(edges, dtype=float)
    integral = np.concatenate(([0.0], np.cumsum(counts)))
    integral /= integral[-1]

    r = rng.random()
    ibin = int(np.searchsorted(integral, r, side="right")) - 1
    ibin = min(max(ibin, 0), len(counts) - 1)

    x = edges[ibin]
    width = integral[ibin + 1] - integral[ibin]
    if r > integral[ibin] and width > 0:
        x += (edges[ibin + 1] - edges[ibin]) * (r - integral[ibin]) / width
    return float(x)


class PtUnfolder:
    """
    Maps a reconstructed jet pt to a corrected one.

    Without a response matrix, or for a pt outside its reconstructed
    axis, the input is returned unchanged. Each of these cases is
    logged once per unfolder.
    """

    def __init__(self, response, rng):
        self.response = response
        self.rng = rng
        self._reported = set()

    def _report_once(self, key, message, *args):
        if key in self._reported:
            return
        self._reported.add(key)
        logger.warning(message, *args)

    def corrected_pt(self, pt_rec):
        if self.response is None:
            self._report_once("missing", "Response matrix is not available; jet pt is not unfolded.")
            return pt_rec

        rec_axis = self.response.axes[0]
        ibin = rec_axis.index(pt_rec)
        if ibin < 0 or ibin >= len(rec_axis):
            self._report_once(
                "range",
                "Jet pt %s outside the response matrix range [%s, %s); returning it uncorrected.",
                pt_rec, rec_axis.edges[0], rec_axis.edges[-1],
            )
            return pt_rec

        offsets = np.clip(self.response.values()[ibin, :], 0.0, None)
        if offsets.sum() <= 0:
            return pt_rec

        delta_pt = sample_from_bins(offsets, self.response.axes[1].edges, self.rng)
        return pt_rec + delta_pt
