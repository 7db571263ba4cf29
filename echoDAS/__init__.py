from .implementations import CalculateIn, Interpolation, Precision
from .errors import EchoDASError, ShapeMismatch, InvalidGeometry, DeviceError, BeamformTimeout
from .transducer import Element, Transducer, TransducerArray, TransducerConvex
from .sequence import SeqType, Sequence, SequenceRadial, TransmitEvent
from .scan import Scan, ScanCartesian, ScanPolar, scan_cartesian
from .channel_data import ChannelData
from .delays import receive_delay, transmit_delay, round_trip_delay
from .interpolate import Interpolator, interpolate
from .signal import hilbert, mod2db, log_compress
from .scan_convert import scan_convert
from .delay_and_sum import DAS, beamform
from . import apodization

__version__ = '1.0.0'
