import numpy as np
from .errors import InvalidGeometry


def next_power_of_2(n: int) -> int:
    return int(2**np.ceil(np.log2(max(n, 1))))


def pad_to_nearest_power_of_2(RF, n_samples: int, axis: int = -1):
    N = next_power_of_2(n_samples)
    if N > n_samples:
        pad = [(0, 0)] * RF.ndim
        pad[axis] = (0, N-n_samples)
        RF = get_array_module(RF).pad(RF, pad)
    return RF, N


def get_array_module(x):
    """numpy or cupy, whichever owns x"""
    if type(x).__module__.split('.')[0] == 'cupy':
        import cupy as cp
        return cp
    return np


def to_numpy(x) -> np.ndarray:
    if get_array_module(x) is np:
        return np.asarray(x)
    return x.get()


def check_finite(name: str, value) -> None:
    if not np.all(np.isfinite(value)):
        raise InvalidGeometry("%s must be finite, got %s" % (name, value))


def check_positive(name: str, value) -> None:
    check_finite(name, value)
    if not np.all(np.asarray(value) > 0):
        raise InvalidGeometry("%s must be positive, got %s" % (name, value))
