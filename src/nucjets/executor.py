"""
Running the per-file analysis on a local Dask cluster.

Each ROOT file becomes one delayed task that carries its own seed, so
the merged histograms do not depend on how tasks land on workers.
``compute_files`` gathers the per-file results in submission order.
"""

from dask.distributed import Client, LocalCluster
from dask import delayed


def create_local_client(n_workers=4, threads_per_worker=1):
    """
    Client on a LocalCluster of single-threaded process workers.

    Parameters
    ----------
    n_workers : int
        Worker processes; one file is analysed at a time in each.
    threads_per_worker : int
        Kept at 1 unless the clustering is known to be thread safe.

    Returns
    -------
    dask.distributed.Client
    """
    # fastjet holds global state, so each worker is its own process
    cluster = LocalCluster(
        n_workers=n_workers,
        threads_per_worker=threads_per_worker,
        processes=True,
    )
    return Client(cluster)


def map_files(client, filenames, process_function, config, seeds):
    """
    Wrap the per-file analysis as Dask delayed tasks.

    Parameters
    ----------
    client : dask.distributed.Client
        Active Dask client.
    filenames : list of str
        ROOT files to process.
    process_function : callable
        ``process_function(filename, config, seed)`` returning
        ``(hists, info)`` or None.
    config : dict
        Configuration passed to every task.
    seeds : list of numpy.random.SeedSequence
        One independent seed per file.

    Returns
    -------
    list of dask.delayed.Delayed
    """
    if len(seeds) != len(filenames):
        raise ValueError("Need exactly one seed per input file")
    return [
        delayed(process_function)(filename, config, seed)
        for filename, seed in zip(filenames, seeds)
    ]


def compute_files(client, tasks):
    """Run the delayed tasks on the cluster and gather their results in order."""
    futures = client.compute(tasks)
    return client.gather(futures)
