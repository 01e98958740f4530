"""
Step plots with statistical error bars for the merged histograms.
"""

import os

import numpy as np
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt


def plot_1d(h, path, title=None, logy=False):
    """
    Draw a 1D histogram as a step line with Poisson error bars.
    """
    counts = h.values()
    edges = h.axes[0].edges
    centers = 0.5 * (edges[:-1] + edges[1:])
    errors = np.sqrt(counts)

    fig, ax = plt.subplots()
    ax.step(edges[:-1], counts, where="post", label="Entries")
    ax.errorbar(
        centers,
        counts,
        yerr=errors,
        fmt=".",
        markersize=2,
        linewidth=0.5,
        label="Statistical errors",
    )
    if logy and counts.sum() > 0:
        ax.set_yscale("log")
    ax.set_xlabel(h.axes[0].label or h.axes[0].name)
    ax.set_ylabel("Entries")
    if title:
        ax.set_title(title)
    ax.legend(loc="best", frameon=False)
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def plot_2d(h, path, title=None):
    """Colour map of a 2D histogram."""
    xedges = h.axes[0].edges
    yedges = h.axes[1].edges

    fig, ax = plt.subplots()
    X, Y = np.meshgrid(xedges, yedges)
    pcm = ax.pcolormesh(X, Y, h.values().T)
    ax.set_xlabel(h.axes[0].label or h.axes[0].name)
    ax.set_ylabel(h.axes[1].label or h.axes[1].name)
    if title:
        ax.set_title(title)
    fig.colorbar(pcm, ax=ax, label="Entries")
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)


def plot_histograms(hists, outdir):
    """
    Save one PNG per 1D or 2D histogram; higher dimensions are projected
    onto their first two axes. Returns the written paths.
    """
    written = []
    for name, h in hists.items():
        if h.values().sum() == 0:
            continue
        path = os.path.join(outdir, f"{name}.png")
        if h.ndim == 1:
            plot_1d(h, path, title=name)
        else:
            plot_2d(h.project(0, 1), path, title=name)
        written.append(path)
    return written
