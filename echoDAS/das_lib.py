from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
import time
import numpy as np
import scipy.ndimage

from .delays import receive_delay, transmit_delay_from_parameters, transmit_parameters
from .errors import BeamformTimeout, ShapeMismatch
from .implementations import Interpolation, Precision
from .interpolate import Interpolator
from .signal import hilbert

# default number of (point, element, event) samples evaluated per task
CHUNK_SAMPLES = 2**20


class DASLib(ABC):
    """
    execution backend of the delay-and-sum engine

    the image is split into chunks of scan points; every chunk is an independent
    task that computes its delays, samples all (element, event) traces and sums
    them into its own slice of the output. subclasses decide where the arrays
    live (xp, ndi), how the tasks are scheduled (run) and which resources have
    to be held while they execute (scope)
    """
    xp = np
    ndi = scipy.ndimage

    def __init__(self, precision: Precision = Precision.SINGLE,
                 interp: Interpolation = Interpolation.LINEAR,
                 chunk_size: int = None) -> None:
        super().__init__()
        self.precision = Precision(precision)
        self.interp = Interpolation(interp)
        self.chunk_size = chunk_size

    @abstractmethod
    def run(self, task, npoints: int, n_traces: int, dtype, deadline: float = None) -> np.ndarray:
        """
        execute task(slice) over consecutive slices of range(npoints) and gather
        the results into a host array of length npoints
        """
        pass

    @contextmanager
    def scope(self):
        yield

    def asarray(self, x, dtype=None):
        return self.xp.asarray(x, dtype=dtype)

    def asnumpy(self, x) -> np.ndarray:
        return np.asarray(x)

    def envelope(self, RF):
        """analytic signal of [T, N, M] data along time, returned on the host"""
        with self.scope():
            RF = self.asarray(RF, self.precision.real)
            return self.asnumpy(hilbert(RF, axis=0))

    def slices(self, npoints: int, n_traces: int):
        chunk = self.chunk_size or max(1, CHUNK_SAMPLES // max(n_traces, 1))
        return [slice(i, min(i + chunk, npoints)) for i in range(0, npoints, chunk)]

    @staticmethod
    def check_deadline(deadline: float) -> None:
        if deadline is not None and time.monotonic() > deadline:
            raise BeamformTimeout("Beamforming exceeded its time budget")

    def _prepare(self, data):
        dtype = self.precision.dtype_for(data)
        data = self.asarray(data, dtype)
        T, N, M = data.shape
        interp = Interpolator(data.reshape(T, N * M), self.interp, 0., self.xp, self.ndi)
        return interp, dtype, (T, N, M)

    def _sum(self, interp, tau, apod, t0: float, fs: float):
        # tau: [P, N, M] delays [s]
        xp = self.xp
        rdtype = self.precision.real
        P = tau.shape[0]
        s = (tau - rdtype.type(t0)) * rdtype.type(fs)
        samples = interp(s.reshape(P, -1))
        if apod is not None:
            samples = samples * self.asarray(apod, rdtype).reshape(P, -1)
        return xp.sum(samples, axis=1)

    def delay_and_sum(self, data, del_tx, del_rx, apod=None, t0: float = 0., fs: float = 1.,
                      deadline: float = None) -> np.ndarray:
        """
        delay-and-sum on precomputed delays

        Parameters
        ----------
        data : array
            [T, N, M] real or analytic channel data
        del_tx : array
            [P, M] transmit delays
        del_rx : array
            [P, N] receive delays
        apod : array, optional
            weights broadcastable to [P, N, M]
        t0, fs : float
            time of the first sample and sampling frequency. the defaults take the
            delays in units of samples
        deadline : float, optional
            time.monotonic() value after which the call is abandoned

        Returns
        -------
        np.ndarray
            [P] image on the host
        """
        T, N, M = np.shape(data)
        P = np.shape(del_tx)[0]
        if np.shape(del_tx) != (P, M):
            raise ShapeMismatch('transmit delay shape', (P, M), np.shape(del_tx))
        if np.shape(del_rx) != (P, N):
            raise ShapeMismatch('receive delay shape', (P, N), np.shape(del_rx))
        apod = broadcast_apodization(apod, (P, N, M))

        with self.scope():
            interp, dtype, _ = self._prepare(data)
            rdtype = self.precision.real
            del_tx = self.asarray(del_tx, rdtype)
            del_rx = self.asarray(del_rx, rdtype)

            def task(sl):
                tau = del_tx[sl][:, None, :] + del_rx[sl][:, :, None]
                return self._sum(interp, tau, None if apod is None else apod[sl], t0, fs)

            return self.run(task, P, N * M, dtype, deadline)

    def beamform(self, points: np.ndarray, xdc, seq, data, c0: float, t0: float, fs: float,
                 apod=None, deadline: float = None) -> np.ndarray:
        """
        delay-and-sum with the delays computed chunk by chunk

        Parameters
        ----------
        points : np.ndarray
            [P, 3] image points in scan order
        xdc, seq
            transducer and sequence matching the [T, N, M] data
        apod : callable or array, optional
            apod(points, xdc, seq) or an array, broadcastable to [P, N, M]

        Returns
        -------
        np.ndarray
            [P] image on the host
        """
        T, N, M = np.shape(data)
        P = points.shape[0]
        if callable(apod):
            broadcast_apodization(apod(points[:1], xdc, seq), (min(P, 1), N, M))
        else:
            apod = broadcast_apodization(apod, (P, N, M))

        with self.scope():
            interp, dtype, _ = self._prepare(data)
            rdtype = self.precision.real
            params = transmit_parameters(seq, xdc, rdtype, self.xp)
            positions = self.asarray(xdc.positions(), rdtype)

            def task(sl):
                p = self.asarray(points[sl], rdtype)
                tau = (transmit_delay_from_parameters(p, params, c0, rdtype, self.xp)[:, None, :]
                       + receive_delay(p, positions, c0, rdtype, self.xp)[:, :, None])
                if callable(apod):
                    a = broadcast_apodization(apod(points[sl], xdc, seq), (tau.shape[0], N, M))
                else:
                    a = None if apod is None else apod[sl]
                return self._sum(interp, tau, a, t0, fs)

            logging.log(logging.DEBUG, "beamforming %d points x %d elements x %d transmits" % (P, N, M))
            return self.run(task, P, N * M, dtype, deadline)


def broadcast_apodization(apod, shape):
    if apod is None:
        return None
    try:
        return np.broadcast_to(np.asarray(apod), shape)
    except ValueError:
        raise ShapeMismatch('apodization shape', shape, np.shape(apod)) from None
