import time
import numpy as np

from .channel_data import ChannelData
from .errors import ShapeMismatch
from .implementations import CalculateIn, Interpolation, Precision
from .py_lib import PyDASLib
from .scan import Scan
from .sequence import SeqType, Sequence
from .transducer import Transducer
from .utils import check_finite, check_positive


class DAS():
    def __init__(self, target: CalculateIn = CalculateIn.PYTHON,
                 precision: Precision = Precision.SINGLE,
                 interp: Interpolation = Interpolation.LINEAR,
                 device: int = 0, workers: int = 1, chunk_size: int = None) -> None:
        """
        delay-and-sum object
        this class is a high-level link to the backend executing the calculations

        Parameters
        ----------
        target : CalculateIn, optional
            host (numpy) or CUDA (cupy) backend, passed as an enumerable.
            by default CalculateIn.PYTHON
        precision : Precision, optional
            single or double precision for the delays, the samples and the image
        interp : Interpolation, optional
            kernel used to sample the channel data at the computed delays
        device : int, optional
            CUDA device index, used with target=CalculateIn.CUDA
        workers : int, optional
            number of host threads, used with target=CalculateIn.PYTHON
        chunk_size : int, optional
            number of scan points per task. by default chosen so that every task
            handles about a million samples
        """
        target = CalculateIn.from_device(target)
        options = dict(precision=Precision(precision), interp=Interpolation(interp), chunk_size=chunk_size)
        if target == CalculateIn.PYTHON:
            self.lib = PyDASLib(workers=workers, **options)
        else:
            from .cuda_lib import CudaDASLib
            self.lib = CudaDASLib(device=device, **options)
        self.target = target

    @property
    def precision(self) -> Precision:
        return self.lib.precision

    @property
    def interp(self) -> Interpolation:
        return self.lib.interp

    def beamform(self, xdc: Transducer, seq: Sequence, scan: Scan, chd: ChannelData,
                 c0: float = None, apod=None, timeout: float = None) -> np.ndarray:
        """
        delay-and-sum image of the channel data over the scan

        Parameters
        ----------
        xdc : Transducer
            receiving array, one element per channel of chd
        seq : Sequence
            transmit sequence, one event per transmit of chd
        scan : Scan
            image points
        chd : ChannelData
            [T, N, M] real or analytic data
        c0 : float, optional
            beamforming sound speed, by default chd.c0
        apod : callable or array, optional
            apodization, see echoDAS.apodization. broadcastable to [P, N, M]
        timeout : float, optional
            seconds after which the call is abandoned with BeamformTimeout

        Returns
        -------
        np.ndarray
            [scan.npoints] image in scan enumeration order; complex for analytic
            data. use scan.reshape to get the grid
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        c0 = chd.c0 if c0 is None else c0
        validate(xdc, seq, chd, c0)

        points = scan.positions().reshape(-1, 3)
        check_finite('scan positions', points)
        data = chd.data if self.target == CalculateIn.CUDA else chd.to_host().data
        return self.lib.beamform(points, xdc, seq, data, c0, chd.t0, chd.fs, apod, deadline)

    def envelope(self, RF: np.ndarray) -> np.ndarray:
        """
        calculate the analytic signal along the temporal axis using the hilbert transform

        Parameters
        ----------
        RF : np.ndarray
            raw RF data of shape [n_samples, n_el, n_acq]

        Returns
        -------
        np.ndarray
            complex hilbert transform of the input, same shape.
            NOTE: the transform runs at the next power of two of n_samples and is
            truncated back
        """
        return self.lib.envelope(RF)

    def delay_and_sum(self, data: np.ndarray, del_Tx: np.ndarray, del_Rx: np.ndarray,
                      apod: np.ndarray = None, t0: float = 0., fs: float = 1.,
                      timeout: float = None) -> np.ndarray:
        """
        delay and sum on precomputed delays

        Parameters
        ----------
        data : np.ndarray
            channel data of shape [n_samples, n_el, n_acq]
        del_Tx : np.ndarray
            transmit delays for P points, shape [P, n_acq]
        del_Rx : np.ndarray
            receive delays for P points, shape [P, n_el]
        apod : np.ndarray, optional
            weights broadcastable to [P, n_el, n_acq]
        t0, fs : float, optional
            start time and sampling frequency of data. the defaults take the delays
            in samples

        Returns
        -------
        np.ndarray
            [P] beamformed values, summed over all elements and transmissions
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        return self.lib.delay_and_sum(data, del_Tx, del_Rx, apod, t0, fs, deadline)


def validate(xdc: Transducer, seq: Sequence, chd: ChannelData, c0: float) -> None:
    """fail before any computation when the data do not match the geometry"""
    if chd.N != xdc.numel:
        raise ShapeMismatch('number of channels', xdc.numel, chd.N)
    if chd.M != seq.numpulse:
        raise ShapeMismatch('number of transmits', seq.numpulse, chd.M)
    if seq.type is SeqType.FSA and max(seq.elements) >= xdc.numel:
        raise ShapeMismatch('FSA element index', '< %d' % xdc.numel, max(seq.elements))
    check_positive('c0', c0)
    check_finite('element positions', xdc.positions())


def beamform(xdc: Transducer, seq: Sequence, scan: Scan, chd: ChannelData, c0: float = None,
             apod=None, interp='linear', device='host', precision='single', workers: int = 1,
             timeout: float = None) -> np.ndarray:
    """
    one-shot delay-and-sum, see DAS.beamform

    device is 'host' or a CUDA device index
    """
    target = CalculateIn.from_device(device)
    das = DAS(target, precision=precision, interp=interp,
              device=device if target == CalculateIn.CUDA else 0, workers=workers)
    return das.beamform(xdc, seq, scan, chd, c0=c0, apod=apod, timeout=timeout)
