from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Iterator
import numpy as np
from scipy.signal import gausspulse

from .utils import check_finite, check_positive


@dataclass(frozen=True, eq=False)
class Element:
    position: np.ndarray
    orientation: np.ndarray
    width: float


@dataclass(frozen=True)
class Transducer(ABC):
    """
    base class of the transducer geometries
    subclasses implement positions() and orientations(), both returning arrays of
    shape [numel, 3] in channel order

    Parameters
    ----------
    numel : int
        number of elements
    fc : float
        center frequency [Hz]
    bw : float
        fractional bandwidth of the impulse response
    width : float
        element width [m]
    c0 : float
        reference sound speed [m/s]
    """
    numel: int = 128
    fc: float = 5e6
    bw: float = 0.6
    width: float = 0.25e-3
    c0: float = 1540.

    def __post_init__(self) -> None:
        if int(self.numel) < 1:
            raise ValueError("A transducer needs at least one element, got numel=%s" % self.numel)
        check_positive('fc', self.fc)
        check_positive('bw', self.bw)
        check_positive('c0', self.c0)

    @abstractmethod
    def positions(self) -> np.ndarray:
        pass

    @abstractmethod
    def orientations(self) -> np.ndarray:
        pass

    def element(self, i: int) -> Element:
        if not 0 <= i < self.numel:
            raise IndexError("Element index %d out of range for a %d element transducer" % (i, self.numel))
        return Element(self.positions()[i], self.orientations()[i], self.width)

    def impulse(self, fs: float) -> np.ndarray:
        """
        impulse response waveform of a single element

        Parameters
        ----------
        fs : float
            sampling frequency [Hz]

        Returns
        -------
        np.ndarray
            gaussian modulated sinusoid at the center frequency, sampled symmetrically
            around its peak out to where it falls below -60 dB
        """
        t_cut = gausspulse('cutoff', fc=self.fc, bw=self.bw, tpr=-60)
        t = np.arange(-np.ceil(t_cut * fs), np.ceil(t_cut * fs) + 1) / fs
        return gausspulse(t, fc=self.fc, bw=self.bw)

    def replace(self, **changes) -> 'Transducer':
        return replace(self, **changes)

    def __len__(self) -> int:
        return self.numel

    def __iter__(self) -> Iterator[Element]:
        for i in range(self.numel):
            yield self.element(i)


@dataclass(frozen=True)
class TransducerArray(Transducer):
    """linear array, elements along x at z = 0 facing +z"""
    pitch: float = 0.3e-3

    def __post_init__(self) -> None:
        super().__post_init__()
        check_positive('pitch', self.pitch)

    def positions(self) -> np.ndarray:
        x = (np.arange(self.numel) - (self.numel - 1) / 2) * self.pitch
        return np.stack((x, np.zeros_like(x), np.zeros_like(x)), -1)

    def orientations(self) -> np.ndarray:
        return np.tile([0., 0., 1.], (self.numel, 1))


@dataclass(frozen=True)
class TransducerConvex(Transducer):
    """
    curvilinear array
    elements lie on an arc around the virtual center (0, 0, -radius), each one
    facing radially outward. angular_pitch is in degrees
    """
    radius: float = 50e-3
    angular_pitch: float = 0.5

    def __post_init__(self) -> None:
        super().__post_init__()
        check_positive('radius', self.radius)
        check_positive('angular_pitch', self.angular_pitch)

    @property
    def center(self) -> np.ndarray:
        return np.array([0., 0., -self.radius])

    @property
    def angles(self) -> np.ndarray:
        return (np.arange(self.numel) - (self.numel - 1) / 2) * self.angular_pitch

    @property
    def pitch(self) -> float:
        # arc length between neighbours
        return self.radius * np.deg2rad(self.angular_pitch)

    def positions(self) -> np.ndarray:
        p = self.center + self.radius * self.orientations()
        check_finite('element positions', p)
        return p

    def orientations(self) -> np.ndarray:
        th = np.deg2rad(self.angles)
        return np.stack((np.sin(th), np.zeros_like(th), np.cos(th)), -1)
