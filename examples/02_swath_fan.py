"""
Example 02: Swath Fan Through a Deep-Ocean Profile

Traces one ping worth of beams (symmetric fan, per-beam travel times
from a flat seafloor) on the CPU reference and, when taichi is
installed, on the GPU kernel. Prints the across-track profile, the
CPU/GPU agreement and the timing of both paths.
"""

import sys
import pathlib
import time

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1] / "src"))

import numpy as np

from svp_raytrace.config import DEEP_OCEAN
from svp_raytrace.raytracing.cpu_ref import trace_fan_cpu
from svp_raytrace.raytracing import kernels
from svp_raytrace.utils.synthetic import beam_fan


def main():
    # — Configuration ————————————————————————————————————————————————————————
    model        = DEEP_OCEAN.build()
    source_depth = 5.0
    seafloor     = 3200.0
    angles       = beam_fan(n_beams=101, swath_width=130.0)

    # Straight-ray travel times to a flat seafloor at the surface speed;
    # refraction makes the traced depths differ from it.
    slant_range  = (seafloor - source_depth) / np.cos(np.radians(angles))
    travel_times = slant_range / DEEP_OCEAN.surface_velocity

    print(f"Profile: {DEEP_OCEAN.name} ({DEEP_OCEAN.n_nodes} nodes)")
    print(f"Beams:   {angles.size}, swath {angles[0]:.1f} to {angles[-1]:.1f} deg")

    # — CPU reference ————————————————————————————————————————————————————————
    t0  = time.perf_counter()
    cpu = trace_fan_cpu(model, source_depth, angles, travel_times)
    t_cpu = time.perf_counter() - t0

    print(f"\nCPU: {t_cpu * 1e3:.1f} ms, {int(np.sum(cpu.ok))}/{cpu.n_beams} beams ok")
    print("\n  angle [deg]    x [m]       z [m]     status")
    for i in range(0, angles.size, 10):
        print(f"  {angles[i]:9.2f}  {cpu.x[i]:10.2f}  {cpu.z[i]:10.2f}  "
              f"{cpu.statuses()[i].name}")

    # — GPU kernel ———————————————————————————————————————————————————————————
    if not kernels.is_available():
        print("\ntaichi not installed; skipping GPU fan (pip install svp-raytrace[gpu])")
        return

    kernels.ensure_initialized()
    kernels.trace_fan_gpu(model, source_depth, angles, travel_times)  # warm-up / JIT
    t0  = time.perf_counter()
    gpu = kernels.trace_fan_gpu(model, source_depth, angles, travel_times)
    t_gpu = time.perf_counter() - t0

    print(f"\nGPU: {t_gpu * 1e3:.1f} ms (speed-up {t_cpu / max(t_gpu, 1e-9):.1f}x)")
    print(f"  max |dx| = {np.max(np.abs(gpu.x - cpu.x)):.3e} m")
    print(f"  max |dz| = {np.max(np.abs(gpu.z - cpu.z)):.3e} m")
    print(f"  status agreement: {np.array_equal(gpu.status, cpu.status)}")


if __name__ == "__main__":
    main()
