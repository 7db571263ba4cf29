import numpy as np
import scipy.signal

from .utils import get_array_module, pad_to_nearest_power_of_2


def hilbert(x, axis: int = 0, N: int = None):
    """
    analytic signal along the time axis

    the transform is computed at a zero padded length N (by default the next
    power of two of the axis length) and truncated back to the original length

    Parameters
    ----------
    x : array
        real valued data, numpy or cupy
    axis : int
        time axis
    N : int, optional
        transform length, must not be shorter than the time axis

    Returns
    -------
    array
        complex analytic signal of the same shape as x
    """
    xp = get_array_module(x)
    n = x.shape[axis]
    if N is None:
        x, N = pad_to_nearest_power_of_2(x, n, axis)
    elif N < n:
        raise ValueError("Transform length %d is shorter than the signal (%d samples)" % (N, n))

    if xp is np:
        h = scipy.signal.hilbert(x, N=N, axis=axis)
    else:
        import cupyx.scipy.signal
        h = cupyx.scipy.signal.hilbert(x, N=N, axis=axis)

    h = xp.take(h, xp.arange(n), axis=axis)
    return h.astype(np.result_type(x.dtype, np.complex64), copy=False)


def mod2db(x):
    """
    power in decibels, 20 * log10(|x|)
    zero magnitudes are clamped to the smallest normal number of the dtype so the
    result stays finite; NaN stays NaN
    """
    xp = get_array_module(x)
    mag = xp.abs(xp.asarray(x))
    if mag.dtype.kind != 'f':
        mag = mag.astype(np.float64)
    tiny = np.finfo(mag.dtype).tiny
    return 20 * xp.log10(xp.maximum(mag, tiny))


log_compress = mod2db
