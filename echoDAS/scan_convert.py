import numpy as np
import scipy.ndimage

from .errors import ShapeMismatch
from .scan import Scan
from .utils import get_array_module


def scan_convert(src_scan: Scan, image, dst_scan: Scan, order: int = 1, fill_value: float = np.nan):
    """
    resample an image from one scan onto another

    every point of dst_scan is expressed in the native axes of src_scan (radius
    and angle about the origin of a polar scan, z/x/y for a cartesian one) and
    the image is interpolated there. points outside src_scan get fill_value, they
    are never extrapolated

    Parameters
    ----------
    src_scan : Scan
        scan the image was formed on
    image : array
        flat buffer in src_scan order or an array of shape src_scan.shape.
        compress before converting when the result is meant for display
    dst_scan : Scan
        target points
    order : int
        spline order, 1 (bilinear) by default
    fill_value : float
        value outside of the source domain

    Returns
    -------
    array
        image of shape dst_scan.shape
    """
    xp = get_array_module(image)
    if xp is np:
        ndi = scipy.ndimage
    else:
        import cupyx.scipy.ndimage
        ndi = cupyx.scipy.ndimage

    image = xp.asarray(image)
    if image.size != src_scan.npoints:
        raise ShapeMismatch('number of image points', src_scan.npoints, image.size)
    image = image.reshape(src_scan.shape)
    if image.dtype.kind not in 'fc':
        image = image.astype(np.float64)

    coords = src_scan.native_index(dst_scan.positions().reshape(-1, 3))
    valid = np.all(np.isfinite(coords), axis=0)
    coords = xp.asarray(np.where(valid, coords, 0.), dtype=image.real.dtype)
    valid = xp.asarray(valid)

    def sample(a):
        return ndi.map_coordinates(a, coords, order=order, mode='nearest')

    if image.dtype.kind == 'c':
        out = sample(image.real) + 1j * sample(image.imag)
    else:
        out = sample(image)

    out = xp.where(valid, out, xp.asarray(fill_value, dtype=out.dtype))
    return out.reshape(dst_scan.shape)
