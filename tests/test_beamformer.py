"""Tests for the delay-and-sum engine on the host and CUDA backends."""

import logging
import sys

import numpy as np
import pytest
from scipy.signal import windows

from echoDAS import (
    DAS,
    BeamformTimeout,
    CalculateIn,
    ChannelData,
    DeviceError,
    InvalidGeometry,
    Precision,
    ScanCartesian,
    ScanPolar,
    SeqType,
    Sequence,
    SequenceRadial,
    ShapeMismatch,
    TransducerArray,
    TransducerConvex,
    apodization,
    beamform,
    scan_cartesian,
    scan_convert,
)

from . import DEFAULT_TEST_SEED
from .helpers import cuda_available, point_target_data

C0 = 1500.0
FS = 40e6


@pytest.fixture
def xdc():
    return TransducerArray(numel=8, pitch=0.3e-3)


@pytest.fixture
def single_element(xdc):
    """FSA event from element 4, impulse at the round trip to 30 mm right in front of it"""
    seq = Sequence(SeqType.FSA, c0=C0, elements=(4,))
    data = np.zeros((2048, 8, 1))
    data[round(40e-6 * FS), 4, 0] = 1.0
    return seq, ChannelData(data, fs=FS, c0=C0)


@pytest.fixture
def fsa_target(xdc):
    seq = Sequence.fsa(8, c0=C0)
    return seq, point_target_data(xdc, seq, [0.0, 0.0, 20e-3], FS, 2048, C0)


class TestConcreteScenario:
    def test_round_trip_peak(self, xdc, single_element):
        seq, chd = single_element
        scan = ScanCartesian(x=[0.15e-3], z=[20e-3, 30e-3, 40e-3])
        img = DAS().beamform(xdc, seq, scan, chd)
        assert img.shape == (3,)
        assert img.dtype == np.float32
        np.testing.assert_allclose(img[1], 1.0, atol=1e-3)
        np.testing.assert_array_equal(img[[0, 2]], 0.0)

    def test_zero_off_the_geometric_path(self, xdc, single_element):
        seq, chd = single_element
        scan = ScanCartesian(x=[-5e-3, 5e-3], z=[30e-3])
        img = DAS().beamform(xdc, seq, scan, chd)
        np.testing.assert_array_equal(img, 0.0)

    @pytest.mark.parametrize("interp", ["nearest", "linear", "cubic", "freq"])
    def test_every_kernel_hits_the_sample(self, xdc, single_element, interp):
        seq, chd = single_element
        scan = ScanCartesian(x=[0.15e-3], z=[30e-3])
        img = beamform(xdc, seq, scan, chd, interp=interp)
        np.testing.assert_allclose(img, 1.0, atol=1e-3)


class TestPointSpread:
    def test_peak_at_target(self, xdc, fsa_target):
        seq, chd = fsa_target
        scan = ScanCartesian(x=[0.0], z=[20e-3])
        img = DAS(precision=Precision.DOUBLE).beamform(xdc, seq, scan, chd)
        assert img.dtype == np.float64
        np.testing.assert_allclose(img, 64.0, rtol=1e-9)

    def test_near_zero_along_the_axis(self, xdc, fsa_target):
        seq, chd = fsa_target
        z = 20e-3 + 0.5e-3 * np.arange(-10, 11)
        img = DAS().beamform(xdc, seq, ScanCartesian(x=[0.0], z=z), chd)
        np.testing.assert_allclose(img[10], 64.0, rtol=1e-3)
        assert np.abs(np.delete(img, 10)).max() < 1e-6 * 64

    def test_lateral_grid_maximum(self, xdc, fsa_target):
        seq, chd = fsa_target
        scan = ScanCartesian(x=np.linspace(-2e-3, 2e-3, 9), z=np.linspace(19e-3, 21e-3, 9))
        img = scan.reshape(DAS().beamform(xdc, seq, scan, chd))
        assert np.unravel_index(np.argmax(img), img.shape) == (4, 4, 0)

    def test_plane_wave_compounding(self, xdc):
        th = np.deg2rad([-10.0, 0.0, 10.0])
        seq = Sequence(SeqType.PW, c0=C0, focus=np.stack([np.sin(th), 0 * th, np.cos(th)], -1))
        chd = point_target_data(xdc, seq, [1e-3, 0.0, 15e-3], FS, 2048, C0)
        img = DAS(precision="double").beamform(xdc, seq, ScanCartesian(x=[1e-3], z=[15e-3]), chd)
        np.testing.assert_allclose(img, 24.0, rtol=1e-9)

    @pytest.mark.parametrize("focal_depth", [10e-3, 30e-3])
    def test_focused_transmits(self, xdc, focal_depth):
        # the target lies past the focus for 10 mm and before it for 30 mm
        seq = Sequence(SeqType.VS, c0=C0, focus=[[x, 0.0, focal_depth] for x in (-1e-3, 0.0, 1e-3)])
        chd = point_target_data(xdc, seq, [0.0, 0.0, 20e-3], FS, 2048, C0)
        z = 20e-3 + 0.5e-3 * np.arange(-10, 11)
        img = DAS(precision="double").beamform(xdc, seq, ScanCartesian(x=[0.0], z=z), chd)
        np.testing.assert_allclose(img[10], 24.0, rtol=1e-9)
        assert np.abs(np.delete(img, 10)).max() < 1e-6 * 24

    def test_convex_sector(self):
        xdc = TransducerConvex(numel=32, radius=40e-3, angular_pitch=1.0)
        seq = SequenceRadial(SeqType.VS, c0=C0, angles=[-4.0, -2.0, 0.0, 2.0, 4.0], ranges=50e-3,
                             apex_position=tuple(xdc.center))
        th = np.deg2rad(5.0)
        target = xdc.center + 60e-3 * np.array([np.sin(th), 0.0, np.cos(th)])
        chd = point_target_data(xdc, seq, target, FS, 2048, C0)

        scan = ScanPolar(r=60e-3 + 0.25e-3 * np.arange(-4, 5), a=5.0 + np.arange(-4, 5), origin=xdc.center)
        img = scan.reshape(DAS(precision="double").beamform(xdc, seq, scan, chd))
        assert img.shape == (9, 9)
        assert np.unravel_index(np.argmax(img), img.shape) == (4, 4)
        np.testing.assert_allclose(img[4, 4], 32 * 5, rtol=1e-9)

        cart = scan_cartesian(scan)
        out = scan_convert(scan, img, cart)
        assert out.shape == cart.shape
        assert np.isfinite(out[4, 4, 0])
        assert np.nanmax(out) <= 32 * 5 + 1e-6
        at_target = scan_convert(scan, img, ScanCartesian(x=[target[0]], z=[target[2]]))
        np.testing.assert_allclose(at_target.ravel(), 32 * 5, rtol=1e-6)

    def test_threads_match_sequential(self, xdc, fsa_target):
        seq, chd = fsa_target
        scan = ScanCartesian(x=np.linspace(-2e-3, 2e-3, 11), z=np.linspace(15e-3, 25e-3, 31))
        ref = DAS(chunk_size=16).beamform(xdc, seq, scan, chd)
        out = DAS(workers=4, chunk_size=16).beamform(xdc, seq, scan, chd)
        np.testing.assert_array_equal(out, ref)
        np.testing.assert_allclose(DAS().beamform(xdc, seq, scan, chd), ref, rtol=1e-6, atol=1e-6)

    def test_analytic_data(self, xdc, fsa_target):
        seq, chd = fsa_target
        scan = ScanCartesian(x=[0.0, 1e-3], z=[20e-3, 22e-3])
        rf = DAS().beamform(xdc, seq, scan, chd)
        iq = DAS().beamform(xdc, seq, scan, chd.hilbert())
        assert iq.dtype == np.complex64
        np.testing.assert_allclose(iq.real, rf, atol=1e-4 * np.abs(rf).max())

    def test_envelope(self, fsa_target):
        _, chd = fsa_target
        iq = DAS().envelope(chd.data)
        assert iq.dtype == np.complex64
        assert iq.shape == chd.data.shape
        np.testing.assert_allclose(iq, chd.hilbert().data, atol=1e-4)


class TestReductionOrder:
    @pytest.fixture
    def problem(self):
        rng = np.random.default_rng(DEFAULT_TEST_SEED)
        data = rng.standard_normal((256, 8, 4))
        del_tx = rng.uniform(0, 100, (50, 4))
        del_rx = rng.uniform(0, 100, (50, 8))
        return data, del_tx, del_rx

    def test_permuted_elements_and_events(self, problem):
        data, del_tx, del_rx = problem
        rng = np.random.default_rng(DEFAULT_TEST_SEED + 1)
        pe, pt = rng.permutation(8), rng.permutation(4)
        das = DAS()
        ref = das.delay_and_sum(data, del_tx, del_rx)
        out = das.delay_and_sum(data[:, pe][:, :, pt], del_tx[:, pt], del_rx[:, pe])
        np.testing.assert_allclose(out, ref, rtol=1e-5, atol=1e-5 * np.abs(ref).max())

    def test_matches_explicit_loop(self, problem):
        data, del_tx, del_rx = problem
        out = DAS(precision="double").delay_and_sum(data, del_tx, del_rx)
        t = np.arange(256)
        ref = np.zeros(50)
        for p in range(50):
            for i in range(8):
                for j in range(4):
                    ref[p] += np.interp(del_tx[p, j] + del_rx[p, i], t, data[:, i, j], left=0, right=0)
        np.testing.assert_allclose(out, ref, rtol=1e-10, atol=1e-10)

    def test_time_axis(self, problem):
        data, del_tx, del_rx = problem
        das = DAS(precision="double")
        ref = das.delay_and_sum(data, del_tx, del_rx)
        out = das.delay_and_sum(data, del_tx * 1e-7 + 1e-6, del_rx * 1e-7, t0=1e-6, fs=1e7)
        np.testing.assert_allclose(out, ref, rtol=1e-9, atol=1e-9)


class TestApodization:
    def test_array_weights(self, xdc, single_element):
        seq, chd = single_element
        scan = ScanCartesian(x=[0.15e-3], z=[30e-3])
        mute = np.ones((1, 8, 1))
        mute[0, 4, 0] = 0
        np.testing.assert_array_equal(DAS().beamform(xdc, seq, scan, chd, apod=mute), 0.0)
        np.testing.assert_allclose(DAS().beamform(xdc, seq, scan, chd, apod=2.0), 2.0, atol=2e-3)

    def test_element_window(self, xdc, single_element):
        seq, chd = single_element
        scan = ScanCartesian(x=[0.15e-3], z=[30e-3])
        img = DAS().beamform(xdc, seq, scan, chd, apod=apodization.element_window("hann"))
        np.testing.assert_allclose(img, windows.hann(8, sym=True)[4], atol=1e-3)

    def test_rx_fnumber_cone(self, xdc):
        points = np.array([[0.15e-3, 0.0, 3e-3], [0.15e-3, 0.0, 30e-3], [0.15e-3, 0.0, -1e-3]])
        seq = Sequence.fsa(8, c0=C0)
        w = apodization.rx_fnumber(2.0)(points, xdc, seq)
        assert w.shape == (3, 8, 1)
        # half width 0.75 mm at 3 mm: elements 2..6 are 0.6 mm or closer to x = 0.15 mm
        np.testing.assert_array_equal(w[0, :, 0], [0, 0, 1, 1, 1, 1, 1, 0])
        np.testing.assert_array_equal(w[1, :, 0], 1)
        np.testing.assert_array_equal(w[2, :, 0], 0)

    @pytest.mark.parametrize("window", ["hann", "tukey"])
    def test_rx_fnumber_tapers(self, xdc, window):
        points = np.array([[0.15e-3, 0.0, 3e-3]])
        w = apodization.rx_fnumber(2.0, window)(points, xdc, Sequence.fsa(8))[0, :, 0]
        assert w[4] == pytest.approx(1.0)
        assert np.all(w[[0, 1, 7]] == 0)
        assert np.all(np.diff(w[4:]) <= 0)

    def test_invalid_fnumber(self):
        with pytest.raises(ValueError):
            apodization.rx_fnumber(0.0)
        with pytest.raises(ValueError):
            apodization.rx_fnumber(1.0, "gauss")

    def test_event_window_and_product(self, xdc):
        seq = Sequence(SeqType.PW, focus=[[0, 0, 1]] * 5)
        points = np.zeros((2, 3))
        w = apodization.event_window("hann")(points, xdc, seq)
        assert w.shape == (1, 1, 5)
        both = apodization.product(apodization.element_window("hann"), apodization.event_window("hann"))
        w = both(points, xdc, seq)
        assert w.shape == (1, 8, 5)
        np.testing.assert_allclose(w[0], np.outer(windows.hann(8, sym=True), windows.hann(5, sym=True)))
        np.testing.assert_array_equal(apodization.uniform()(points, xdc, seq), 1.0)

    def test_wrong_shape(self, xdc, single_element):
        seq, chd = single_element
        scan = ScanCartesian(x=[0.15e-3], z=[30e-3])
        with pytest.raises(ShapeMismatch):
            DAS().beamform(xdc, seq, scan, chd, apod=np.ones((1, 7, 1)))
        with pytest.raises(ShapeMismatch):
            DAS().beamform(xdc, seq, scan, chd, apod=lambda p, x, s: np.ones((len(p), 3, 1)))


class TestValidation:
    @pytest.fixture
    def scan(self):
        return ScanCartesian(x=[0.0], z=[20e-3])

    def test_channel_count(self, xdc, scan):
        chd = ChannelData(np.zeros((64, 7, 8)), fs=FS)
        with pytest.raises(ShapeMismatch) as err:
            DAS().beamform(xdc, Sequence.fsa(8), scan, chd)
        assert err.value.expected == 8 and err.value.actual == 7
        assert "number of channels" in str(err.value)

    def test_transmit_count(self, xdc, scan):
        chd = ChannelData(np.zeros((64, 8, 3)), fs=FS)
        with pytest.raises(ShapeMismatch):
            DAS().beamform(xdc, Sequence.fsa(8), scan, chd)

    def test_fsa_element_beyond_the_array(self, xdc, scan):
        chd = ChannelData(np.zeros((64, 8, 1)), fs=FS)
        with pytest.raises(ShapeMismatch):
            DAS().beamform(xdc, Sequence(SeqType.FSA, elements=(9,)), scan, chd)

    @pytest.mark.parametrize("c0", [0.0, -1500.0, np.nan])
    def test_sound_speed(self, xdc, scan, fsa_target, c0):
        seq, chd = fsa_target
        with pytest.raises(InvalidGeometry):
            DAS().beamform(xdc, seq, scan, chd, c0=c0)

    def test_apodization_checked_before_setup(self, xdc, fsa_target, scan, monkeypatch):
        seq, chd = fsa_target

        def fail(*args, **kwargs):
            raise AssertionError("channel data were prepared before the shape check")

        monkeypatch.setattr("echoDAS.das_lib.Interpolator", fail)
        with pytest.raises(ShapeMismatch):
            DAS().beamform(xdc, seq, scan, chd, apod=np.ones((1, 7, 8)))
        with pytest.raises(ShapeMismatch):
            DAS().beamform(xdc, seq, scan, chd, apod=lambda p, x, s: np.ones((len(p), 3, 1)))
        with pytest.raises(ShapeMismatch):
            DAS().delay_and_sum(chd.data, np.zeros((5, 8)), np.zeros((5, 8)), apod=np.ones((5, 2)))

    def test_delay_shapes(self):
        das = DAS()
        data = np.zeros((64, 8, 2))
        with pytest.raises(ShapeMismatch):
            das.delay_and_sum(data, np.zeros((5, 3)), np.zeros((5, 8)))
        with pytest.raises(ShapeMismatch):
            das.delay_and_sum(data, np.zeros((5, 2)), np.zeros((4, 8)))

    def test_timeout(self, xdc, fsa_target):
        seq, chd = fsa_target
        scan = ScanCartesian(x=np.linspace(-1e-3, 1e-3, 5), z=np.linspace(15e-3, 25e-3, 5))
        with pytest.raises(BeamformTimeout):
            DAS().beamform(xdc, seq, scan, chd, timeout=-1)
        with pytest.raises(TimeoutError):
            DAS(workers=2, chunk_size=2).beamform(xdc, seq, scan, chd, timeout=-1)

    def test_device_names(self):
        assert CalculateIn.from_device("host") is CalculateIn.PYTHON
        assert CalculateIn.from_device(1) is CalculateIn.CUDA
        with pytest.raises(ValueError):
            CalculateIn.from_device("gpu")
        with pytest.raises(ValueError):
            beamform(None, None, None, None, device=-1)

    def test_host_warns_on_whole_signal_kernels(self, caplog):
        with caplog.at_level(logging.WARNING):
            DAS(interp="freq")
        assert "freq interpolation is slow" in caplog.text

    def test_missing_cupy(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "cupy", None)
        with pytest.raises(DeviceError):
            DAS(CalculateIn.CUDA)


@pytest.mark.skipif(not cuda_available(), reason="requires cupy and a CUDA device")
class TestCuda:
    @pytest.fixture
    def pw_target(self, xdc):
        th = np.deg2rad([-8.0, 0.0, 8.0])
        seq = Sequence(SeqType.PW, c0=C0, focus=np.stack([np.sin(th), 0 * th, np.cos(th)], -1))
        chd = point_target_data(xdc, seq, [0.5e-3, 0.0, 18e-3], FS, 2048, C0)
        return seq, chd

    @pytest.mark.parametrize("precision,rtol", [("single", 1e-4), ("double", 1e-10)])
    @pytest.mark.parametrize("interp", ["linear", "cubic"])
    def test_matches_host(self, xdc, pw_target, precision, rtol, interp):
        seq, chd = pw_target
        scan = ScanCartesian(x=np.linspace(-2e-3, 2e-3, 21), z=np.linspace(15e-3, 21e-3, 31))
        host = beamform(xdc, seq, scan, chd, interp=interp, precision=precision)
        cuda = beamform(xdc, seq, scan, chd, interp=interp, precision=precision, device=0)
        assert isinstance(cuda, np.ndarray)
        assert cuda.dtype == host.dtype
        np.testing.assert_allclose(cuda, host, rtol=rtol, atol=rtol * np.abs(host).max())

    def test_device_resident_data(self, xdc, pw_target):
        seq, chd = pw_target
        scan = ScanCartesian(x=[0.5e-3], z=[18e-3])
        das = DAS(CalculateIn.CUDA, precision="double")
        img = das.beamform(xdc, seq, scan, chd.to_device(0))
        np.testing.assert_allclose(img, 24.0, rtol=1e-9)

    def test_memory_released(self, xdc, pw_target):
        import cupy as cp
        seq, chd = pw_target
        scan = ScanCartesian(x=np.linspace(-2e-3, 2e-3, 21), z=np.linspace(15e-3, 21e-3, 31))
        das = DAS(CalculateIn.CUDA)
        for _ in range(3):
            das.beamform(xdc, seq, scan, chd)
            pool = cp.get_default_memory_pool()
            assert pool.total_bytes() == pool.used_bytes()

    def test_unknown_device(self):
        import cupy as cp
        with pytest.raises(DeviceError):
            DAS(CalculateIn.CUDA, device=cp.cuda.runtime.getDeviceCount())
