"""
time-of-flight model

all functions take the array namespace (numpy or cupy) and the dtype in which
every quantity is computed; inputs are cast once on entry so that single and
double precision are never mixed
"""
import numpy as np

from .sequence import SeqType
from .utils import check_positive, check_finite


def _norm(xp, v):
    return xp.sqrt(xp.sum(v * v, axis=-1))


def receive_delay(points, positions, c0: float, dtype=np.float32, xp=np):
    """
    one-way delay from each point to each receiving element

    Parameters
    ----------
    points : array
        [P, 3] image points
    positions : array
        [N, 3] element positions

    Returns
    -------
    array
        [P, N] delays [s]
    """
    check_positive('c0', c0)
    points = xp.asarray(points, dtype=dtype)
    positions = xp.asarray(positions, dtype=dtype)
    return _norm(xp, points[:, None, :] - positions[None, :, :]) / np.dtype(dtype).type(c0)


def transmit_parameters(sequence, xdc, dtype=np.float32, xp=np) -> dict:
    """
    per-event geometry of a sequence as arrays in the working precision

    Returns
    -------
    dict
        'type', 'apex' [3], and either 'sources' [M, 3] (FSA firing element
        positions), 'directions' [M, 3] (PW) or 'focus' and 'directions' [M, 3] (VS)
    """
    params = {'type': sequence.type, 'apex': xp.asarray(sequence.apex, dtype=dtype)}
    if sequence.type is SeqType.FSA:
        pos = xdc.positions()
        check_finite('element positions', pos)
        params['sources'] = xp.asarray(pos[list(sequence.elements)], dtype=dtype)
    elif sequence.type is SeqType.PW:
        params['directions'] = xp.asarray(sequence.directions(), dtype=dtype)
    elif sequence.type is SeqType.VS:
        params['focus'] = xp.asarray(sequence.focus, dtype=dtype)
        params['directions'] = xp.asarray(sequence.directions(), dtype=dtype)
    else:
        raise ValueError("Unknown sequence type %s" % sequence.type)
    return params


def transmit_delay_from_parameters(points, params: dict, c0: float, dtype=np.float32, xp=np):
    """transmit_delay on the output of transmit_parameters"""
    check_positive('c0', c0)
    c0 = np.dtype(dtype).type(c0)
    apex = params['apex']
    # apex-centered coordinates
    p = xp.asarray(points, dtype=dtype) - apex

    seq_type = params['type']
    if seq_type is SeqType.FSA:
        src = params['sources'] - apex
        return _norm(xp, p[:, None, :] - src[None, :, :]) / c0

    elif seq_type is SeqType.PW:
        return (p @ params['directions'].T) / c0

    elif seq_type is SeqType.VS:
        d = p[:, None, :] - (params['focus'] - apex)[None, :, :]
        # beyond the focal plane: diverging (+), before it: converging (-)
        side = xp.sum(d * params['directions'][None, :, :], axis=-1)
        sign = xp.where(side >= 0, 1, -1).astype(dtype)
        return sign * _norm(xp, d) / c0

    raise ValueError("Unknown sequence type %s" % seq_type)


def transmit_delay(points, sequence, xdc, c0: float, dtype=np.float32, xp=np):
    """
    one-way delay from the transmit event's time zero to each point

    FSA:  distance from the firing element
    PW:   projection on the steering direction
    VS:   signed distance from the focus: positive past the focal plane
          (along the propagation axis), negative before it. points on the
          focal plane count as past it
    apex-relative sequences compute all of the above about the apex

    Parameters
    ----------
    points : array
        [P, 3] image points
    sequence : Sequence
    xdc : Transducer
        provides the element positions of FSA sequences
    c0 : float
        sound speed [m/s]

    Returns
    -------
    array
        [P, M] delays [s]
    """
    params = transmit_parameters(sequence, xdc, dtype, xp)
    return transmit_delay_from_parameters(points, params, c0, dtype, xp)


def round_trip_delay(points, xdc, sequence, c0: float, dtype=np.float32, xp=np):
    """
    total time of flight

    Returns
    -------
    array
        [P, N, M] transmit + receive delay for every point, element and event
    """
    tau_tx = transmit_delay(points, sequence, xdc, c0, dtype, xp)
    tau_rx = receive_delay(points, xdc.positions(), c0, dtype, xp)
    return tau_tx[:, None, :] + tau_rx[:, :, None]
