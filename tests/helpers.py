"""Shared builders for synthetic acquisitions."""

import numpy as np

from echoDAS import ChannelData, round_trip_delay


def splat(trace, s, amplitude=1.0):
    """Two-sample pulse on which linear interpolation returns amplitude at s."""
    i = int(np.floor(s))
    trace[i] += amplitude
    trace[i + 1] += amplitude


def point_target_data(xdc, seq, target, fs, n_samples, c0, amplitude=1.0):
    """Channel data of a single scatterer, one splatted pulse per (element, transmit)."""
    tau = round_trip_delay(np.atleast_2d(target), xdc, seq, c0, dtype=np.float64)[0]
    data = np.zeros((n_samples, xdc.numel, seq.numpulse))
    for i in range(xdc.numel):
        for j in range(seq.numpulse):
            splat(data[:, i, j], tau[i, j] * fs, amplitude)
    return ChannelData(data, fs=fs, t0=0.0, c0=c0)


def cuda_available():
    try:
        import cupy
        return cupy.cuda.runtime.getDeviceCount() > 0
    except Exception:
        return False
