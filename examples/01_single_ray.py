"""
Example 01: Single Ray Through a Two-Layer Profile

Traces one beam through the reference two-gradient profile, prints the
terminal state and sampled path, and compares the closed-form result
with numerical integration of Snell's law.
"""

import sys
import pathlib

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1] / "src"))

import logging

from svp_raytrace import build_model, destroy_model, trace
from svp_raytrace.utils.synthetic import integrate_reference_ray


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # — Configuration ————————————————————————————————————————————————————————
    depths     = [0.0, 100.0, 1000.0]
    velocities = [1500.0, 1550.0, 1600.0]
    angle      = 20.0   # degrees from vertical

    model = build_model(depths, velocities)
    if not model:
        raise SystemExit(f"Model rejected: {model.message}")

    print(f"Model: {model}")
    for layer in model.layers:
        print(f"  {layer}")

    # — Trace until the budget runs out ——————————————————————————————————————
    for budget in (0.1, 0.3, 10.0):
        result = trace(model, 0.0, angle, budget, max_path_points=50)
        ref    = integrate_reference_ray(depths, velocities, 0.0, angle, budget)

        print(f"\n— Budget {budget:.2f} s —")
        print(f"  status      : {result.status.name}")
        print(f"  x, z        : {result.x:10.4f} m, {result.z:10.4f} m")
        print(f"  travel time : {result.travel_time:.6f} s")
        print(f"  reference   : {ref.x:10.4f} m, {ref.z:10.4f} m "
              f"(dx={abs(result.x - ref.x):.2e} m)")
        print(f"  path points : {len(result.path)}")

    # — Sampled path ——————————————————————————————————————————————————————————
    path = trace(model, 0.0, angle, 10.0, max_path_points=50).path
    print("\n     x [m]       z [m]      t [s]")
    for x, z, t in zip(path.x, path.z, path.t):
        print(f"  {x:9.3f}  {z:10.3f}  {t:9.6f}")

    # — Failure values ————————————————————————————————————————————————————————
    bad = trace(model, 2000.0, angle, 1.0)
    print(f"\nSource below the model: {bad.status.name} / {bad.error.name}")

    destroy_model(model)


if __name__ == "__main__":
    main()
