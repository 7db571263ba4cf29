"""
apodization functions for the beamformer

every factory returns a callable apod(points, xdc, seq) giving weights
broadcastable to [P, N, M] for P points, N receive elements and M transmits
"""
import numpy as np
from scipy.signal import windows


def window_rect(normalized):
    return np.where(normalized <= 1., 1., 0.)


def window_hann(normalized):
    return np.where(normalized <= 1., 0.5 * (1 + np.cos(np.pi * np.minimum(normalized, 1.))), 0.)


def window_tukey(normalized, alpha: float = 0.5):
    normalized = np.clip(np.abs(normalized), 0., 1.)
    beta = 1. - alpha
    taper = 0.5 * (1 + np.cos(np.pi * (normalized - beta) / (abs(alpha) + 1e-6)))
    return np.where(normalized < beta, 1., np.where(normalized < 1., taper, 0.))


FNUMBER_WINDOWS = {
    'rect': window_rect,
    'hann': window_hann,
    'tukey': window_tukey,
}


def uniform():
    def apod(points, xdc, seq):
        return np.ones((1, 1, 1))
    return apod


def rx_fnumber(f_number: float, window: str = 'rect'):
    """
    receive aperture growing with depth

    an element contributes to a point when the point lies inside the cone of
    half-width depth / (2 * f_number) around the element normal

    Parameters
    ----------
    f_number : float
        receive f-number, > 0
    window : str
        'rect', 'hann' or 'tukey' roll-off towards the edge of the cone
    """
    if not f_number > 0:
        raise ValueError("f_number must be positive, got %s" % f_number)
    try:
        window_fn = FNUMBER_WINDOWS[window]
    except KeyError:
        raise ValueError("Unknown window %r, expected one of %s" % (window, sorted(FNUMBER_WINDOWS))) from None

    def apod(points, xdc, seq):
        d = np.asarray(points)[:, None, :] - xdc.positions()[None, :, :]
        n = xdc.orientations()[None, :, :]
        axial = np.sum(d * n, axis=-1)
        lateral = np.linalg.norm(d - axial[..., None] * n, axis=-1)
        with np.errstate(divide='ignore', invalid='ignore'):
            normalized = np.where(axial > 0, 2 * f_number * lateral / axial, np.inf)
        return window_fn(normalized)[:, :, None]
    return apod


def element_window(name='hann'):
    """fixed taper over the receive aperture, any scipy.signal.windows spec"""
    def apod(points, xdc, seq):
        return windows.get_window(name, xdc.numel, fftbins=False)[None, :, None]
    return apod


def event_window(name='hann'):
    """fixed taper over the transmits, e.g. to weight plane wave angles"""
    def apod(points, xdc, seq):
        return windows.get_window(name, seq.numpulse, fftbins=False)[None, None, :]
    return apod


def product(*apods):
    def apod(points, xdc, seq):
        w = np.ones((1, 1, 1))
        for a in apods:
            w = w * a(points, xdc, seq)
        return w
    return apod
