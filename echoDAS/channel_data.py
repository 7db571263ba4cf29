from dataclasses import dataclass, replace
from typing import Optional
import numpy as np

from .implementations import Precision
from .signal import hilbert
from .utils import check_finite, check_positive, get_array_module, to_numpy


@dataclass(frozen=True, eq=False)
class ChannelData:
    """
    recorded or simulated pulse-echo data

    Parameters
    ----------
    data : array
        [T, N, M] samples indexed by (time, receive element, transmit event).
        the element axis follows the transducer, the event axis the sequence
    fs : float
        sampling frequency [Hz]
    t0 : float
        time of the first sample relative to the transmit time zero [s]
    c0 : float
        nominal sound speed [m/s]
    device : int, optional
        CUDA device holding data, None when it is a host (numpy) array
    """
    data: np.ndarray
    fs: float
    t0: float = 0.
    c0: float = 1540.
    device: Optional[int] = None

    def __post_init__(self) -> None:
        if get_array_module(self.data) is np:
            object.__setattr__(self, 'data', np.asarray(self.data))
        if self.data.ndim == 2:
            object.__setattr__(self, 'data', self.data[:, :, None])
        if self.data.ndim != 3:
            raise ValueError("Channel data must have shape [T, N, M], got %s" % (self.data.shape,))
        check_positive('fs', self.fs)
        check_finite('t0', self.t0)
        check_positive('c0', self.c0)
        on_host = get_array_module(self.data) is np
        if on_host != (self.device is None):
            raise ValueError("device=%s does not match the array type %s" % (self.device, type(self.data).__name__))

    @property
    def T(self) -> int:
        return self.data.shape[0]

    @property
    def N(self) -> int:
        return self.data.shape[1]

    @property
    def M(self) -> int:
        return self.data.shape[2]

    @property
    def time(self) -> np.ndarray:
        return self.t0 + np.arange(self.T) / self.fs

    @property
    def is_analytic(self) -> bool:
        return self.data.dtype.kind == 'c'

    @property
    def precision(self) -> Precision:
        return Precision.SINGLE if self.data.real.dtype == np.float32 else Precision.DOUBLE

    def astype(self, precision) -> 'ChannelData':
        precision = Precision(precision)
        return replace(self, data=self.data.astype(precision.dtype_for(self.data)))

    def remove_dc(self) -> 'ChannelData':
        """subtract the temporal mean of every trace, ignoring NaN samples"""
        xp = get_array_module(self.data)
        return replace(self, data=self.data - xp.nanmean(self.data, axis=0, keepdims=True))

    def hilbert(self, N: int = None) -> 'ChannelData':
        """analytic signal along time, computed at a power of two length by default"""
        if self.is_analytic:
            raise ValueError("Channel data is already analytic")
        return replace(self, data=hilbert(self.data, axis=0, N=N))

    def mask_before(self, t: float) -> 'ChannelData':
        """zero every sample recorded before time t, e.g. to clear direct feedthrough"""
        xp = get_array_module(self.data)
        keep = xp.asarray(self.time >= t)[:, None, None]
        return replace(self, data=xp.where(keep, self.data, 0).astype(self.data.dtype, copy=False))

    def to_device(self, index: int = 0) -> 'ChannelData':
        from .cuda_lib import load_cupy
        cp = load_cupy(index)
        with cp.cuda.Device(index):
            return replace(self, data=cp.asarray(self.data), device=index)

    def to_host(self) -> 'ChannelData':
        return replace(self, data=to_numpy(self.data), device=None)

    def replace(self, **changes) -> 'ChannelData':
        return replace(self, **changes)
