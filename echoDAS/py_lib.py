from concurrent.futures import ThreadPoolExecutor
import logging
import time
import numpy as np

from .das_lib import DASLib


class PyDASLib(DASLib):
    """
    host backend on numpy / scipy
    chunks run on a thread pool when workers > 1 (numpy releases the GIL in the
    heavy array operations); each task writes a disjoint slice of the output
    """

    def __init__(self, workers: int = 1, **kwargs) -> None:
        super().__init__(**kwargs)
        self.workers = max(1, int(workers))
        if not self.interp.is_local:
            logging.log(logging.WARNING, "%s interpolation is slow on the host..." % self.interp.value)

    def run(self, task, npoints: int, n_traces: int, dtype, deadline: float = None) -> np.ndarray:
        out = np.empty(npoints, dtype=dtype)
        slices = self.slices(npoints, n_traces)
        t_start = time.monotonic()

        def work(sl):
            self.check_deadline(deadline)
            out[sl] = task(sl)

        if self.workers == 1 or len(slices) == 1:
            for sl in slices:
                work(sl)
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                futures = [executor.submit(work, sl) for sl in slices]
                try:
                    for future in futures:
                        future.result()
                except BaseException:
                    for future in futures:
                        future.cancel()
                    raise

        logging.log(logging.DEBUG, "host DAS: %d chunks on %d workers in %.3f s"
                    % (len(slices), self.workers, time.monotonic() - t_start))
        return out
