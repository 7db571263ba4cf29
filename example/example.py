import logging
import os
import numpy as np
from matplotlib import pyplot as plt

from simulate import greens_function
import echoDAS as ed

FS = 40e6


def linear_plane_waves():
    xdc = ed.TransducerArray(numel=128, pitch=0.3e-3, fc=5e6)
    seq = ed.SequenceRadial(ed.SeqType.PW, c0=1500, angles=np.arange(-30, 31, 10))
    targets = [[0, 0, z] for z in (10e-3, 20e-3, 30e-3, 40e-3)]

    # laterally the scan ends at the edge of the aperture
    x = xdc.positions()[[0, -1], 0]
    scan = ed.ScanCartesian(x=np.linspace(x[0], x[1], 192), z=np.linspace(5e-3, 45e-3, 384))
    return xdc, seq, scan, targets


def convex_sector():
    xdc = ed.TransducerConvex(numel=128, radius=50e-3, angular_pitch=0.5, fc=3.5e6)
    apex = xdc.center
    seq = ed.SequenceRadial(ed.SeqType.VS, c0=1500, angles=np.arange(-30, 31, 5),
                            ranges=np.linalg.norm(apex) + 35e-3, apex_position=tuple(apex))
    targets = [[0, 0, 20e-3], [10e-3, 0, 30e-3], [-8e-3, 0, 40e-3]]
    scan = ed.ScanPolar(r=np.linalg.norm(apex) + np.linspace(0, 60e-3, 384),
                        a=np.arange(-35, 35.5, 0.5), origin=apex)
    return xdc, seq, scan, targets


def main():
    logging.basicConfig(level=logging.INFO)
    device = os.environ.get('device', 'host')
    device = device if device == 'host' else int(device)

    for name, setup in (('Plane waves', linear_plane_waves), ('Sector', convex_sector)):
        xdc, seq, scan, targets = setup()
        chd = greens_function(xdc, seq, targets, FS)

        plt.figure()
        plt.subplot(1, 2, 1)
        plt.plot(xdc.impulse(FS), '.-')
        plt.title('Element impulse response')
        plt.subplot(1, 2, 2)
        raw = ed.mod2db(chd.data[:, :, seq.numpulse // 2])
        plt.imshow(raw, aspect='auto', cmap='jet', vmin=raw.max() - 80, vmax=raw.max(),
                   extent=(0, xdc.numel, chd.time[-1], chd.time[0]))
        plt.xlabel('Channel')
        plt.ylabel('Time (s)')

        chd = chd.astype(ed.Precision.SINGLE).remove_dc().hilbert()
        if device != 'host':
            chd = chd.to_device(device)
        b = ed.beamform(xdc, seq, scan, chd, apod=ed.apodization.rx_fnumber(1.5, 'hann'),
                        interp='linear', device=device)
        b_im = ed.mod2db(scan.reshape(b))

        if isinstance(scan, ed.ScanPolar):
            # interpolate in dB, the image must not be complex
            scanc = ed.scan_cartesian(scan, nx=2**9, nz=2**9)
            b_im = ed.scan_convert(scan, b_im, scanc)
            scan = scanc

        plt.figure()
        b_im = b_im[..., 0]
        vmax = np.nanmax(b_im)
        plt.imshow(b_im, cmap='gray', vmin=vmax - 60, vmax=vmax,
                   extent=(scan.x[0], scan.x[-1], scan.z[-1], scan.z[0]))
        plt.colorbar()
        plt.title(name)
    plt.show()


if __name__ == "__main__":
    main()
