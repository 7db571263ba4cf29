import numpy as np
import scipy.ndimage

from .implementations import Interpolation

# upper bound on the [queries, traces, samples] phase tensor of the fourier kernel
FREQ_BLOCK = 2**22


def _mirror(xp, i, n: int):
    # scipy.ndimage 'mirror' extension: d c b | a b c d | c b a
    if n == 1:
        return xp.zeros_like(i)
    period = 2 * (n - 1)
    i = xp.abs(i) % period
    return xp.where(i > n - 1, period - i, i)


def _bspline3(xp, t):
    t = xp.abs(t)
    return xp.where(t < 1, 2 / 3 - t**2 + t**3 / 2, xp.where(t < 2, (2 - t)**3 / 6, 0 * t))


def _spline_coefficients(x, ndi):
    if x.shape[0] < 2:
        return x.copy()
    if np.iscomplexobj(x):
        re = ndi.spline_filter1d(x.real, order=3, axis=0, mode='mirror', output=x.real.dtype)
        im = ndi.spline_filter1d(x.imag, order=3, axis=0, mode='mirror', output=x.real.dtype)
        return re + 1j * im
    return ndi.spline_filter1d(x, order=3, axis=0, mode='mirror', output=x.dtype)


class Interpolator:
    """
    samples K uniformly sampled traces at arbitrary real sample positions

    any setup is done once here: 'cubic' prefilters the traces into cubic
    B-spline coefficients (O(T) per trace) and 'freq' takes their FFT
    (O(T log T) per trace). queries then cost O(1) per sample for 'nearest',
    'linear' and 'cubic' and O(T) for 'freq'

    Parameters
    ----------
    x : array
        [T, K] traces, or a single trace of shape [T]
    kernel : Interpolation or str
        'nearest', 'linear', 'cubic' (alias 'spline') or 'freq'
    fill_value : float
        value returned for positions outside [0, T-1] or non-finite positions,
        usually 0 or NaN
    xp, ndi : module
        array namespace and matching ndimage module (numpy/scipy.ndimage or
        cupy/cupyx.scipy.ndimage)
    """

    def __init__(self, x, kernel=Interpolation.LINEAR, fill_value: float = 0.,
                 xp=np, ndi=scipy.ndimage) -> None:
        self.kernel = Interpolation(kernel)
        self.fill_value = fill_value
        self.xp = xp
        x = xp.asarray(x)
        if x.ndim == 1:
            x = x[:, None]
        if x.ndim != 2 or x.shape[0] == 0:
            raise ValueError("Expected traces of shape [T, K] with T > 0, got %s" % (x.shape,))
        if x.dtype.kind in "biu":
            x = x.astype(np.float64)
        self.T, self.K = x.shape
        self.dtype = x.dtype
        self.real_dtype = x.real.dtype

        if self.kernel is Interpolation.CUBIC:
            self.coef = _spline_coefficients(x, ndi)
        elif self.kernel is Interpolation.FREQ:
            cdtype = np.result_type(self.real_dtype, np.complex64)
            self.coef = xp.ascontiguousarray(xp.fft.fft(x, axis=0).T).astype(cdtype, copy=False)
            self.freqs = xp.fft.fftfreq(self.T).astype(self.real_dtype)
        else:
            self.coef = x

    def __call__(self, s):
        """
        Parameters
        ----------
        s : array
            [..., K] fractional sample positions; the last axis selects the trace

        Returns
        -------
        array
            [..., K] interpolated values
        """
        xp = self.xp
        s = xp.asarray(s, dtype=self.real_dtype)
        shape = s.shape
        if shape[-1] != self.K:
            raise ValueError("Expected sample positions for %d traces, got shape %s" % (self.K, shape))
        s = s.reshape(-1, self.K)

        valid = (s >= 0) & (s <= self.T - 1)
        s = xp.where(valid, s, 0)
        k = xp.broadcast_to(xp.arange(self.K), s.shape)

        if self.kernel is Interpolation.NEAREST:
            i = xp.minimum(xp.floor(s + 0.5).astype(xp.int64), self.T - 1)
            out = self.coef[i, k]

        elif self.kernel is Interpolation.LINEAR:
            i0 = xp.floor(s).astype(xp.int64)
            i1 = xp.minimum(i0 + 1, self.T - 1)
            w = s - i0.astype(self.real_dtype)
            out = (1 - w) * self.coef[i0, k] + w * self.coef[i1, k]

        elif self.kernel is Interpolation.CUBIC:
            i = xp.floor(s).astype(xp.int64)
            out = 0
            for o in (-1, 0, 1, 2):
                w = _bspline3(xp, s - (i + o).astype(self.real_dtype))
                out = out + w * self.coef[_mirror(xp, i + o, self.T), k]

        elif self.kernel is Interpolation.FREQ:
            out = self._fourier(s)

        else:
            raise ValueError("Unknown interpolation kernel %s" % self.kernel)

        out = xp.where(valid, out, xp.asarray(self.fill_value, dtype=self.dtype))
        return out.astype(self.dtype, copy=False).reshape(shape)

    def _fourier(self, s):
        # x(s) = 1/T sum_f X_f exp(2 pi i f s), exact at integer s
        xp = self.xp
        out = xp.empty(s.shape, dtype=self.coef.dtype)
        block = max(1, FREQ_BLOCK // (self.K * self.T))
        two_pi = self.real_dtype.type(2 * np.pi)
        for q in range(0, s.shape[0], block):
            phase = xp.exp(1j * two_pi * s[q:q+block, :, None] * self.freqs)
            out[q:q+block] = xp.sum(phase * self.coef, axis=-1) / self.T
        if not np.issubdtype(self.dtype, np.complexfloating):
            out = out.real
        return out


def interpolate(signal, s, kernel=Interpolation.LINEAR, fill_value: float = 0., xp=np, ndi=scipy.ndimage):
    """
    sample a single trace at arbitrary real sample positions

    Parameters
    ----------
    signal : array
        [T] uniformly sampled trace
    s : array
        fractional sample positions of any shape. for delays use s = (tau - t0) * fs
    kernel : Interpolation or str
    fill_value : float
        result outside [0, T-1], e.g. 0 or NaN

    Returns
    -------
    array
        values with the shape of s
    """
    s = xp.asarray(s)
    interp = Interpolator(xp.ravel(xp.asarray(signal)), kernel, fill_value, xp, ndi)
    return interp(s.reshape(-1, 1)).reshape(s.shape)
