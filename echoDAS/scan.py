from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from itertools import product
from typing import Iterator, Tuple
import numpy as np

from .errors import InvalidGeometry, ShapeMismatch
from .utils import check_finite


def _axis(name: str, values) -> np.ndarray:
    v = np.atleast_1d(np.asarray(values, dtype=np.float64)).copy()
    if v.ndim != 1:
        raise InvalidGeometry("Axis %s must be one dimensional, got shape %s" % (name, v.shape))
    check_finite(name, v)
    if np.any(np.diff(v) <= 0):
        raise InvalidGeometry("Axis %s must be strictly increasing" % name)
    v.setflags(write=False)
    return v


def axis_index(axis: np.ndarray, values: np.ndarray) -> np.ndarray:
    """fractional index of values along a monotonic axis, NaN outside of it"""
    values = np.asarray(values, dtype=np.float64)
    if axis.size == 1:
        return np.where(np.isclose(values, axis[0]), 0., np.nan)
    # round-off at the grid boundary counts as inside
    tol = 1e-9 * (np.abs(axis).max() or 1.)
    values = np.where(np.abs(values - axis[0]) <= tol, axis[0], values)
    values = np.where(np.abs(values - axis[-1]) <= tol, axis[-1], values)
    return np.interp(values, axis, np.arange(axis.size, dtype=np.float64), left=np.nan, right=np.nan)


class Scan(ABC):
    """
    ordered set of image points
    points are enumerated row-major over the native axes of the scan; any flat
    image buffer built over the scan follows the same order
    """

    @property
    @abstractmethod
    def shape(self) -> Tuple[int, ...]:
        pass

    @property
    def npoints(self) -> int:
        return int(np.prod(self.shape))

    @abstractmethod
    def positions(self) -> np.ndarray:
        pass

    @abstractmethod
    def points(self) -> Iterator[np.ndarray]:
        pass

    @abstractmethod
    def native_index(self, positions: np.ndarray) -> np.ndarray:
        """
        fractional grid indices of cartesian positions

        Parameters
        ----------
        positions : np.ndarray
            [..., 3] points (x, y, z)

        Returns
        -------
        np.ndarray
            [len(shape), ...] indices along each native axis, NaN outside of the grid
        """
        pass

    def reshape(self, image: np.ndarray) -> np.ndarray:
        image = np.asarray(image)
        if image.size != self.npoints:
            raise ShapeMismatch('number of image points', self.npoints, image.size)
        return image.reshape(self.shape)

    def replace(self, **changes) -> 'Scan':
        return replace(self, **changes)

    def __iter__(self) -> Iterator[np.ndarray]:
        return self.points()

    def __len__(self) -> int:
        return self.npoints


@dataclass(frozen=True, eq=False)
class ScanCartesian(Scan):
    """
    cartesian grid, enumerated over (z, x, y)

    Parameters
    ----------
    x, z, y : array-like
        strictly increasing axes [m]. y defaults to the single plane y = 0
    """
    x: np.ndarray = (0.,)
    z: np.ndarray = (0.,)
    y: np.ndarray = (0.,)

    def __post_init__(self) -> None:
        for name in ('x', 'y', 'z'):
            object.__setattr__(self, name, _axis(name, getattr(self, name)))

    @property
    def shape(self) -> Tuple[int, int, int]:
        return self.z.size, self.x.size, self.y.size

    def positions(self) -> np.ndarray:
        z, x, y = np.meshgrid(self.z, self.x, self.y, indexing='ij')
        return np.stack((x, y, z), -1)

    def points(self) -> Iterator[np.ndarray]:
        for z, x, y in product(self.z, self.x, self.y):
            yield np.array([x, y, z])

    def native_index(self, positions: np.ndarray) -> np.ndarray:
        p = np.asarray(positions, dtype=np.float64)
        return np.stack((axis_index(self.z, p[..., 2]),
                         axis_index(self.x, p[..., 0]),
                         axis_index(self.y, p[..., 1])))

    def with_size(self, nx: int = None, nz: int = None) -> 'ScanCartesian':
        """same bounds, different number of samples"""
        x = self.x if nx is None else np.linspace(self.x[0], self.x[-1], nx)
        z = self.z if nz is None else np.linspace(self.z[0], self.z[-1], nz)
        return replace(self, x=x, z=z)


@dataclass(frozen=True, eq=False)
class ScanPolar(Scan):
    """
    polar grid about an origin (apex), enumerated over (r, a)

    Parameters
    ----------
    r : array-like
        strictly increasing radii [m]
    a : array-like
        strictly increasing angles [deg] from +z towards +x
    origin : array-like
        center of the polar grid
    """
    r: np.ndarray = (0.,)
    a: np.ndarray = (0.,)
    origin: np.ndarray = (0., 0., 0.)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'r', _axis('r', self.r))
        object.__setattr__(self, 'a', _axis('a', self.a))
        if self.r[0] < 0:
            raise InvalidGeometry("Radii must be non-negative, got %s" % self.r[0])
        if self.a[0] <= -180 or self.a[-1] > 180:
            raise InvalidGeometry("Angles must lie in (-180, 180] degrees")
        origin = np.asarray(self.origin, dtype=np.float64).copy()
        if origin.shape != (3,):
            raise InvalidGeometry("origin must be a 3-vector, got shape %s" % (origin.shape,))
        check_finite('origin', origin)
        origin.setflags(write=False)
        object.__setattr__(self, 'origin', origin)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.r.size, self.a.size

    def _to_cartesian(self, r, a) -> np.ndarray:
        th = np.deg2rad(a)
        r, th = np.broadcast_arrays(r, th)
        return self.origin + np.stack((r * np.sin(th), np.zeros_like(r), r * np.cos(th)), -1)

    def positions(self) -> np.ndarray:
        return self._to_cartesian(self.r[:, None], self.a[None, :])

    def points(self) -> Iterator[np.ndarray]:
        for r, a in product(self.r, self.a):
            yield self._to_cartesian(r, a)

    def native_index(self, positions: np.ndarray) -> np.ndarray:
        d = np.asarray(positions, dtype=np.float64) - self.origin
        r = np.hypot(d[..., 0], d[..., 2])
        a = np.rad2deg(np.arctan2(d[..., 0], d[..., 2]))
        ir = axis_index(self.r, r)
        ia = axis_index(self.a, a)
        # the grid lies in the plane y = origin[1]
        ir = np.where(np.isclose(d[..., 1], 0.), ir, np.nan)
        return np.stack((ir, ia))

    def with_size(self, nr: int = None, na: int = None) -> 'ScanPolar':
        r = self.r if nr is None else np.linspace(self.r[0], self.r[-1], nr)
        a = self.a if na is None else np.linspace(self.a[0], self.a[-1], na)
        return replace(self, r=r, a=a)


def scan_cartesian(scan: Scan, nx: int = None, nz: int = None) -> ScanCartesian:
    """
    cartesian scan covering the same region as the given scan

    for a polar scan the bounds are those of its point cloud and the number of
    samples defaults to (na, nr) along (x, z)
    """
    if isinstance(scan, ScanCartesian):
        return scan.with_size(nx=nx, nz=nz)
    if isinstance(scan, ScanPolar):
        p = scan.positions()
        nx = scan.a.size if nx is None else nx
        nz = scan.r.size if nz is None else nz
        return ScanCartesian(
            x=np.linspace(p[..., 0].min(), p[..., 0].max(), nx),
            z=np.linspace(p[..., 2].min(), p[..., 2].max(), nz),
            y=(scan.origin[1],))
    raise TypeError("Unsupported scan type %s" % type(scan).__name__)
