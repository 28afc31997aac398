"""
Dask execution of the per-file isolation.

The cluster and client live only for the duration of one run; results
come back paired with their input file, in input order.
"""

from dask.distributed import Client, LocalCluster
from dask import delayed


def file_tasks(filenames, process_function, config):
    """One delayed ``process_function(filename, config)`` per file."""
    return [delayed(process_function)(filename, config) for filename in filenames]


def run_files(filenames, process_function, config, n_workers=4, threads_per_worker=1):
    """
    Process files on a local, threads-only Dask cluster.

    Parameters
    ----------
    filenames : list of str
        ROOT files to process.
    process_function : callable
        process_function(filename, config), e.g. the driver's
        ``safe_process_file`` which returns None for a failed file.
    config : dict
        Full run configuration, forwarded unchanged.
    n_workers, threads_per_worker : int
        Size of the LocalCluster.

    Returns
    -------
    list of (filename, result)
        Results keep the order of ``filenames``.
    """
    tasks = file_tasks(filenames, process_function, config)

    with LocalCluster(
        n_workers=n_workers,
        threads_per_worker=threads_per_worker,
        processes=False,  # threads-only, safe in WSL
    ) as cluster, Client(cluster) as client:
        results = client.gather(client.compute(tasks))

    return list(zip(filenames, results))
