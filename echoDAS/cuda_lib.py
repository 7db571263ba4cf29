from contextlib import contextmanager
import logging
import time
import numpy as np

from .das_lib import DASLib
from .errors import DeviceError


def load_cupy(device: int = 0):
    """
    checks that cupy is installed and that the requested CUDA device exists

    Parameters
    ----------
    device : int
        CUDA device index

    Returns
    -------
    module
        the cupy module
    """
    try:
        import cupy as cp
    except ImportError as err:
        raise DeviceError("cupy is required for the CUDA backend. "
                          "Install echo-das[cuda] or use the host backend") from err

    try:
        n_devices = cp.cuda.runtime.getDeviceCount()
    except cp.cuda.runtime.CUDARuntimeError as err:
        raise DeviceError("No NVIDIA GPU detected. Try updating CUDA toolkit.") from err

    if not 0 <= device < n_devices:
        raise DeviceError("CUDA device %d requested but %d device(s) available" % (device, n_devices))
    return cp


class CudaDASLib(DASLib):
    """
    accelerator backend on cupy

    all device buffers of a call are allocated inside scope(), which selects the
    device and returns the memory pool blocks when the call ends, successful or not
    """

    def __init__(self, device: int = 0, **kwargs) -> None:
        super().__init__(**kwargs)
        self.cp = load_cupy(device)
        import cupyx.scipy.ndimage
        self.xp = self.cp
        self.ndi = cupyx.scipy.ndimage
        self.device = device

    @contextmanager
    def scope(self):
        cp = self.cp
        try:
            with cp.cuda.Device(self.device):
                yield
                cp.cuda.Stream.null.synchronize()
        except cp.cuda.memory.OutOfMemoryError as err:
            raise DeviceError("CUDA device %d ran out of memory" % self.device) from err
        except cp.cuda.runtime.CUDARuntimeError as err:
            raise DeviceError("CUDA error on device %d: %s" % (self.device, err)) from err
        finally:
            with cp.cuda.Device(self.device):
                cp.get_default_memory_pool().free_all_blocks()
                cp.get_default_pinned_memory_pool().free_all_blocks()
            logging.log(logging.DEBUG, "released CUDA memory pool on device %d" % self.device)

    def asnumpy(self, x) -> np.ndarray:
        return self.cp.asnumpy(x)

    def run(self, task, npoints: int, n_traces: int, dtype, deadline: float = None) -> np.ndarray:
        out = self.cp.empty(npoints, dtype=dtype)
        slices = self.slices(npoints, n_traces)
        t_start = time.monotonic()
        for sl in slices:
            self.check_deadline(deadline)
            out[sl] = task(sl)
        out = self.cp.asnumpy(out)
        logging.log(logging.DEBUG, "CUDA DAS: %d chunks in %.3f s" % (len(slices), time.monotonic() - t_start))
        return out
