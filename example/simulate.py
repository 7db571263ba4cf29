import numpy as np

from echoDAS import ChannelData, round_trip_delay


def greens_function(xdc, seq, targets, fs, c0=None, pad=5e-6):
    """
    channel data of point scatterers in a homogeneous medium

    every (element, transmit) trace is the element impulse response delayed by
    the round trip time to each scatterer. the record starts pad seconds before
    the earliest echo and ends pad seconds after the latest one
    """
    c0 = seq.c0 if c0 is None else c0
    targets = np.atleast_2d(targets)
    tau = round_trip_delay(targets, xdc, seq, c0, dtype=np.float64)  # [K, N, M]

    pulse = xdc.impulse(fs)
    t_pulse = (np.arange(len(pulse)) - len(pulse) // 2) / fs
    t0 = np.floor((tau.min() - pad) * fs) / fs
    T = int(np.ceil((tau.max() - t0 + pad) * fs))
    t = t0 + np.arange(T) / fs

    data = np.zeros((T, xdc.numel, seq.numpulse))
    for tau_k in tau:
        data += np.interp(t[:, None, None] - tau_k[None], t_pulse, pulse, left=0., right=0.)
    return ChannelData(data, fs=fs, t0=t0, c0=c0)
