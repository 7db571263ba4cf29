from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, Optional, Tuple
import numpy as np

from .errors import InvalidGeometry
from .transducer import Transducer
from .utils import check_finite, check_positive


class SeqType(Enum):
    FSA = 'FSA'
    PW = 'PW'
    VS = 'VS'


@dataclass(frozen=True, eq=False)
class TransmitEvent:
    """
    one transmit of a sequence
    exactly one of focus (VS), direction (PW) or element (FSA) identifies the event.
    VS events also carry the propagation axis in direction
    """
    index: int
    type: SeqType
    focus: Optional[np.ndarray] = None
    direction: Optional[np.ndarray] = None
    element: Optional[int] = None
    apex: np.ndarray = field(default_factory=lambda: np.zeros(3))


@dataclass(frozen=True, eq=False)
class Sequence:
    """
    transmit sequence

    Parameters
    ----------
    type : SeqType or str
        'FSA', 'PW' or 'VS'
    c0 : float
        sound speed used to define the transmit delays [m/s]
    focus : np.ndarray, optional
        [M, 3] array: steering vectors for 'PW' (normalized on construction) or
        focal points for 'VS'. unused for 'FSA'
    elements : tuple of int, optional
        firing element of each event for 'FSA'
    """
    type: SeqType = SeqType.FSA
    c0: float = 1540.
    focus: Optional[np.ndarray] = None
    elements: Optional[Tuple[int, ...]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'type', SeqType(self.type))
        check_positive('c0', self.c0)
        self._init_events()

    def _init_events(self) -> None:
        if self.type is SeqType.FSA:
            if self.elements is None or len(self.elements) == 0:
                raise ValueError("A FSA sequence needs the firing element of each event")
            elements = tuple(int(e) for e in self.elements)
            if min(elements) < 0:
                raise IndexError("Negative element index in FSA sequence: %s" % (elements,))
            object.__setattr__(self, 'elements', elements)
            return

        if self.focus is None:
            raise ValueError("A %s sequence needs focus vectors" % self.type.value)
        focus = np.atleast_2d(np.asarray(self.focus, dtype=np.float64))
        if focus.ndim != 2 or focus.shape[1] != 3:
            raise ValueError("focus must have shape [M, 3], got %s" % (focus.shape,))
        check_finite('focus', focus)
        if self.type is SeqType.PW:
            norm = np.linalg.norm(focus, axis=1, keepdims=True)
            if np.any(norm == 0):
                raise InvalidGeometry("Plane wave steering vectors must be non-zero")
            focus = focus / norm
        focus.setflags(write=False)
        object.__setattr__(self, 'focus', focus)

    @classmethod
    def fsa(cls, numel: int, c0: float = 1540.) -> 'Sequence':
        return cls(SeqType.FSA, c0, elements=tuple(range(numel)))

    @property
    def numpulse(self) -> int:
        if self.type is SeqType.FSA:
            return len(self.elements)
        return self.focus.shape[0]

    @property
    def apex(self) -> np.ndarray:
        return np.zeros(3)

    def directions(self) -> Optional[np.ndarray]:
        """[M, 3] unit vectors: steering directions for PW, propagation axes for VS"""
        if self.type is SeqType.PW:
            return self.focus
        if self.type is SeqType.VS:
            return np.tile([0., 0., 1.], (self.numpulse, 1))
        return None

    def event(self, j: int) -> TransmitEvent:
        if not 0 <= j < self.numpulse:
            raise IndexError("Event index %d out of range for a sequence of %d transmits" % (j, self.numpulse))
        if self.type is SeqType.FSA:
            return TransmitEvent(j, self.type, element=self.elements[j], apex=self.apex)
        elif self.type is SeqType.PW:
            return TransmitEvent(j, self.type, direction=self.focus[j], apex=self.apex)
        elif self.type is SeqType.VS:
            return TransmitEvent(j, self.type, focus=self.focus[j], direction=self.directions()[j], apex=self.apex)
        raise ValueError("Unknown sequence type %s" % self.type)

    def delays(self, xdc: Transducer) -> np.ndarray:
        """
        per-element transmit delay profile

        Returns
        -------
        np.ndarray
            [numel, numpulse] firing times [s]. the wavefront passes the origin (PW)
            or the focus (VS) at t = 0; FSA events fire their element at t = 0
        """
        from .delays import transmit_delay
        if self.type is SeqType.FSA:
            return np.zeros((xdc.numel, self.numpulse))
        return transmit_delay(xdc.positions(), self, xdc, self.c0, dtype=np.float64)

    def apodization(self, xdc: Transducer) -> np.ndarray:
        """[numel, numpulse] transmit weights"""
        if self.type is SeqType.FSA:
            apod = np.zeros((xdc.numel, self.numpulse))
            apod[list(self.elements), np.arange(self.numpulse)] = 1
            return apod
        return np.ones((xdc.numel, self.numpulse))

    def replace(self, **changes) -> 'Sequence':
        return replace(self, **changes)

    def __len__(self) -> int:
        return self.numpulse

    def __iter__(self) -> Iterator[TransmitEvent]:
        for j in range(self.numpulse):
            yield self.event(j)


@dataclass(frozen=True, eq=False)
class SequenceRadial(Sequence):
    """
    apex-relative sequence, typically paired with a convex transducer

    Parameters
    ----------
    angles : array-like
        steering angles in degrees about +z in the x-z plane (PW and VS)
    ranges : float or array-like
        distance from the apex to each focus (VS)
    apex_position : array-like
        origin of all positions and angles, e.g. the center of a convex array
    """
    angles: Optional[Tuple[float, ...]] = None
    ranges: object = 1.
    apex_position: Tuple[float, float, float] = (0., 0., 0.)

    def _init_events(self) -> None:
        apex = np.asarray(self.apex_position, dtype=np.float64)
        if apex.shape != (3,):
            raise ValueError("apex must be a 3-vector, got shape %s" % (apex.shape,))
        check_finite('apex', apex)
        if self.type is not SeqType.FSA:
            if self.angles is None:
                raise ValueError("A radial %s sequence needs steering angles" % self.type.value)
            th = np.deg2rad(np.atleast_1d(np.asarray(self.angles, dtype=np.float64)))
            dirs = np.stack((np.sin(th), np.zeros_like(th), np.cos(th)), -1)
            if self.type is SeqType.PW:
                object.__setattr__(self, 'focus', dirs)
            else:
                ranges = np.broadcast_to(np.asarray(self.ranges, dtype=np.float64), th.shape)
                check_positive('ranges', ranges)
                object.__setattr__(self, 'focus', apex + ranges[:, None] * dirs)
        super()._init_events()

    @property
    def apex(self) -> np.ndarray:
        return np.asarray(self.apex_position, dtype=np.float64)

    def directions(self) -> Optional[np.ndarray]:
        if self.type is SeqType.VS:
            d = self.focus - self.apex
            return d / np.linalg.norm(d, axis=1, keepdims=True)
        return super().directions()
