"""
Tests for synthetic profiles, beam fans and the numerical reference ray.
"""

import numpy as np
import pytest

from svp_raytrace.model import LayerKind
from svp_raytrace.utils.synthetic import (
    beam_fan,
    integrate_reference_ray,
    linear_profile,
    munk_profile,
    thermocline_profile,
)


class TestProfiles:
    """Synthetic sound-speed profiles."""

    def test_munk_minimum_on_axis(self):
        profile = munk_profile()
        i_min = int(np.argmin(profile.velocities))
        assert profile.depths[i_min] == 1300.0
        np.testing.assert_allclose(profile.velocities[i_min], 1500.0, rtol=1e-12)

    def test_munk_builds(self):
        model = munk_profile().build()
        assert model.number_layer == 50
        assert model.bottom == 5000.0

    def test_linear_profile(self):
        profile = linear_profile(1500.0, 0.02, 1000.0, n_nodes=11)
        model = profile.build()
        np.testing.assert_allclose([l.gradient for l in model.layers], 0.02, rtol=1e-10)

    def test_thermocline_profile(self):
        profile = thermocline_profile()
        model = profile.build()
        kinds = model.layer_kinds()
        assert kinds[0] is LayerKind.HOMOGENEOUS
        assert kinds[1] is LayerKind.GRADIENT
        assert model.layer(1).gradient < 0.0
        assert model.layer(2).gradient > 0.0

    def test_thermocline_invalid(self):
        with pytest.raises(ValueError):
            thermocline_profile(mixed_layer_depth=100.0, thermocline_depth=50.0)


class TestBeamFan:
    """Symmetric beam angles."""

    def test_symmetric(self):
        angles = beam_fan(11, 120.0)
        assert angles[0] == -60.0
        assert angles[-1] == 60.0
        np.testing.assert_allclose(angles, -angles[::-1], atol=1e-12)

    @pytest.mark.parametrize("width", [0.0, 180.0, 200.0])
    def test_invalid_width(self, width):
        with pytest.raises(ValueError):
            beam_fan(11, width)


class TestReferenceRay:
    """Numerical integration reference."""

    def setup_method(self):
        self.depths = np.array([0.0, 1000.0])
        self.velocities = np.array([1500.0, 1500.0])

    def test_straight_ray_exhausted(self):
        ref = integrate_reference_ray(self.depths, self.velocities, 0.0, 30.0, 0.2)
        assert not ref.exited
        np.testing.assert_allclose(ref.x, 1500.0 * 0.2 * 0.5, rtol=1e-9)
        np.testing.assert_allclose(ref.z, 1500.0 * 0.2 * np.cos(np.radians(30.0)), rtol=1e-9)
        assert ref.t == 0.2

    def test_straight_ray_exits(self):
        ref = integrate_reference_ray(self.depths, self.velocities, 0.0, -30.0, 10.0)
        assert ref.exited
        assert ref.z == 1000.0
        np.testing.assert_allclose(ref.x, -1000.0 * np.tan(np.radians(30.0)), rtol=1e-9)
        np.testing.assert_allclose(ref.t, 1000.0 / (1500.0 * np.cos(np.radians(30.0))),
                                   rtol=1e-9)

    def test_gradient_matches_analytic(self):
        depths = [0.0, 1000.0]
        velocities = [1500.0, 1517.0]
        ref = integrate_reference_ray(depths, velocities, 0.0, 40.0, 10.0)
        p = np.sin(np.radians(40.0)) / 1500.0
        c0 = np.sqrt(1.0 - (p * 1500.0) ** 2)
        c1 = np.sqrt(1.0 - (p * 1517.0) ** 2)
        np.testing.assert_allclose(ref.x, (c0 - c1) / (p * 0.017), rtol=1e-6)

    def test_rejects_turning_ray(self):
        with pytest.raises(ValueError):
            integrate_reference_ray([0.0, 200.0], [1500.0, 1600.0], 0.0, 80.0, 1.0)

    def test_rejects_upward_ray(self):
        with pytest.raises(ValueError):
            integrate_reference_ray(self.depths, self.velocities, 500.0, 120.0, 1.0)
