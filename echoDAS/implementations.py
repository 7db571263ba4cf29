from enum import Enum
import numpy as np


class CalculateIn(Enum):
    """
    execution target of the delay-and-sum engine
    the first entry is a numeric id, the second the name accepted by from_device
    """
    PYTHON = (0, 'host')
    CUDA = (1, 'cuda')

    @classmethod
    def from_device(cls, device) -> 'CalculateIn':
        # 'host' or a CUDA device index
        if isinstance(device, cls):
            return device
        if device is None or device == cls.PYTHON.value[1]:
            return cls.PYTHON
        if isinstance(device, (int, np.integer)) and device >= 0:
            return cls.CUDA
        raise ValueError("Unrecognized device %r, expected 'host' or a CUDA device index" % (device,))


class Precision(Enum):
    SINGLE = 'single'
    DOUBLE = 'double'

    @property
    def real(self) -> np.dtype:
        return np.dtype(np.float32) if self is Precision.SINGLE else np.dtype(np.float64)

    @property
    def complex(self) -> np.dtype:
        return np.dtype(np.complex64) if self is Precision.SINGLE else np.dtype(np.complex128)

    def dtype_for(self, x) -> np.dtype:
        """the dtype of this precision matching the real/complex kind of x"""
        return self.complex if np.iscomplexobj(x) else self.real


class Interpolation(Enum):
    NEAREST = 'nearest'
    LINEAR = 'linear'
    CUBIC = 'cubic'
    FREQ = 'freq'

    @classmethod
    def _missing_(cls, value):
        aliases = {'spline': cls.CUBIC, 'fourier': cls.FREQ}
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None

    @property
    def is_local(self) -> bool:
        # whole-signal kernels need a setup pass per trace
        return self in (Interpolation.NEAREST, Interpolation.LINEAR)
