"""
Tests for the single-ray tracer.

Validates terminal classification, ray-parameter invariance, turning
symmetry, launch-angle correction and error reporting, and compares the
closed-form tracer against numerical integration of Snell's law.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from svp_raytrace.config import DEEP_OCEAN, SUMMER_THERMOCLINE, TraceConfig
from svp_raytrace.errors import ErrorKind, InvalidAngleError
from svp_raytrace.model import VelocityModel
from svp_raytrace.raytracing import (
    Direction,
    RayStatus,
    RayTracer,
    SSVMode,
    correct_launch_angle,
    time_to_turning_point,
    trace,
)
from svp_raytrace.raytracing.tracer import prepare_launch, resolve_ssv_mode
from svp_raytrace.utils.synthetic import integrate_reference_ray


SCENARIO_DEPTHS = [0.0, 100.0, 1000.0]
SCENARIO_VELOCITIES = [1500.0, 1550.0, 1600.0]


class TestHomogeneous:
    """Straight rays in isovelocity water."""

    def setup_method(self):
        self.model = VelocityModel([0.0, 100.0], [1500.0, 1500.0])

    @pytest.mark.parametrize("budget", [0.001, 0.01, 0.05, 0.5, 5.0])
    def test_vertical_ray_has_zero_range(self, budget):
        result = trace(self.model, 0.0, 0.0, budget)
        assert result.x == 0.0
        assert result.status in (RayStatus.TIME_EXHAUSTED, RayStatus.EXITED_BOTTOM)

    def test_vertical_ray_exhausted(self):
        result = trace(self.model, 0.0, 0.0, 0.01)
        assert result.status is RayStatus.TIME_EXHAUSTED
        np.testing.assert_allclose(result.z, 15.0, rtol=1e-12)
        np.testing.assert_allclose(result.travel_time, 0.01, rtol=1e-12)

    def test_vertical_ray_exits_bottom(self):
        result = trace(self.model, 0.0, 0.0, 1.0)
        assert result.status is RayStatus.EXITED_BOTTOM
        assert result.z == 100.0
        np.testing.assert_allclose(result.travel_time, 100.0 / 1500.0, rtol=1e-12)
        assert result.layer == 1

    def test_oblique_ray(self):
        result = trace(self.model, 0.0, 45.0, 1.0)
        assert result.status is RayStatus.EXITED_BOTTOM
        np.testing.assert_allclose(result.x, 100.0, rtol=1e-12)

    def test_upward_ray_exits_top(self):
        result = trace(self.model, 50.0, 135.0, 1.0)
        assert result.status is RayStatus.EXITED_TOP
        assert result.z == 0.0
        np.testing.assert_allclose(result.x, 50.0, rtol=1e-12)
        assert result.direction is Direction.UP
        assert result.layer == -1

    def test_zero_budget(self):
        result = trace(self.model, 20.0, 30.0, 0.0)
        assert result.status is RayStatus.TIME_EXHAUSTED
        assert result.travel_time == 0.0
        assert result.x == 0.0
        assert result.z == 20.0

    def test_boundary_tie_is_time_exhausted(self):
        budget = 100.0 / 1500.0
        result = trace(self.model, 0.0, 0.0, budget)
        assert result.status is RayStatus.TIME_EXHAUSTED
        assert result.z == 100.0


class TestRayParameterInvariance:
    """p recomputed at the end of a trace equals p at the source."""

    @pytest.mark.parametrize("profile", [DEEP_OCEAN, SUMMER_THERMOCLINE])
    @pytest.mark.parametrize("angle", [5.0, 30.0, 60.0, 80.0, -45.0, 110.0, 150.0])
    @pytest.mark.parametrize("budget", [0.02, 0.1, 0.5, 3.0])
    def test_invariant(self, profile, angle, budget):
        model = profile.build()
        source = 0.5 * (profile.depths[0] + profile.depths[-1])
        result = trace(model, source, angle, budget)
        assert result.ok
        v_end = model.velocity_at(result.z)
        p_end = np.sin(np.radians(result.final_angle)) / v_end
        np.testing.assert_allclose(p_end, result.ray_parameter, rtol=1e-6)


class TestTurning:
    """Turning points inside a positive-gradient layer."""

    def setup_method(self):
        self.model = VelocityModel([0.0, 200.0], [1500.0, 1600.0])
        self.layer = self.model.layer(0)
        self.angle = 75.0
        self.p = np.sin(np.radians(self.angle)) / 1500.0

    def test_turning_symmetry(self):
        budget = time_to_turning_point(self.layer, self.p, 0.0)
        result = trace(self.model, 0.0, self.angle, budget)
        assert result.status is RayStatus.TIME_EXHAUSTED
        np.testing.assert_allclose(result.z, self.layer.turning_depth(self.p), rtol=1e-9)
        assert result.direction is Direction.UP
        assert result.turned
        np.testing.assert_allclose(result.final_angle, 90.0, rtol=1e-9)

    def test_turned_ray_exits_top(self):
        result = trace(self.model, 0.0, self.angle, 10.0)
        assert result.status is RayStatus.EXITED_TOP
        assert result.turned
        assert result.z == 0.0
        cos0 = np.cos(np.radians(self.angle))
        np.testing.assert_allclose(result.x, 2.0 * cos0 / (self.p * 0.5), rtol=1e-10)

    def test_turning_in_deeper_layer(self):
        model = VelocityModel([0.0, 100.0, 200.0], [1500.0, 1510.0, 1600.0])
        result = trace(model, 0.0, 75.0, 10.0)
        assert result.status is RayStatus.EXITED_TOP
        assert result.turned
        assert result.n_iterations == 3

    def test_turns_below_slightly_faster_homogeneous_layer(self):
        # layer 1 is homogeneous (|g| below tolerance) but its top speed
        # exceeds 1/p, so the ray turns at 1100 m instead of gliding
        model = VelocityModel([0.0, 100.0, 1100.0, 1200.0],
                              [1500.0, 1520.009, 1520.0, 1600.0])
        assert not model.layer(1).is_gradient
        angle = 180.0 - np.degrees(np.arcsin(1520.0 / 1520.005))
        result = trace(model, 1100.0, angle, 0.005)
        assert result.status is RayStatus.TIME_EXHAUSTED
        assert result.direction is Direction.UP
        assert result.n_iterations == 3
        assert 1100.0 < result.z < model.layer(2).turning_depth(result.ray_parameter)
        assert abs(result.x) < 10.0
        p_end = np.sin(np.radians(result.final_angle)) / model.velocity_at(result.z)
        np.testing.assert_allclose(p_end, result.ray_parameter, rtol=1e-6)

    def test_channel_ray_needs_larger_cap(self):
        model = DEEP_OCEAN.build()
        capped = trace(model, 1300.0, 85.0, 300.0)
        assert capped.status is RayStatus.ERROR
        assert capped.error is ErrorKind.ITERATION_LIMIT_EXCEEDED
        assert capped.n_iterations == TraceConfig().max_iterations(model.number_layer)

        config = TraceConfig(iteration_factor=100)
        result = trace(model, 1300.0, 85.0, 300.0, config=config)
        assert result.status is RayStatus.TIME_EXHAUSTED
        np.testing.assert_allclose(result.travel_time, 300.0, rtol=1e-12)
        assert 500.0 < result.z < 3000.0
        assert result.n_iterations > capped.n_iterations

    def test_iteration_limit(self):
        model = VelocityModel([0.0, 100.0, 200.0], [1500.0, 1510.0, 1600.0])
        config = TraceConfig(iteration_factor=1, iteration_offset=0)
        result = trace(model, 0.0, 75.0, 10.0, config=config)
        assert result.status is RayStatus.ERROR
        assert result.error is ErrorKind.ITERATION_LIMIT_EXCEEDED
        assert not result.ok
        # reported where the ray was when the cap hit
        assert result.z == 100.0
        assert result.direction is Direction.UP


class TestScenario:
    """Two gradient layers compared with numerical integration."""

    def setup_method(self):
        self.model = VelocityModel(SCENARIO_DEPTHS, SCENARIO_VELOCITIES)

    def test_full_budget_exits_bottom(self):
        result = trace(self.model, 0.0, 20.0, 10.0)
        ref = integrate_reference_ray(SCENARIO_DEPTHS, SCENARIO_VELOCITIES, 0.0, 20.0, 10.0)
        assert ref.exited
        assert result.status is RayStatus.EXITED_BOTTOM
        assert result.z == 1000.0
        np.testing.assert_allclose(result.x, ref.x, rtol=1e-3)
        np.testing.assert_allclose(result.travel_time, ref.t, rtol=1e-3)

    @pytest.mark.parametrize("budget", [0.03, 0.3, 0.6])
    def test_partial_budget_matches_reference(self, budget):
        result = trace(self.model, 0.0, 20.0, budget)
        ref = integrate_reference_ray(SCENARIO_DEPTHS, SCENARIO_VELOCITIES, 0.0, 20.0, budget)
        assert not ref.exited
        assert result.status is RayStatus.TIME_EXHAUSTED
        np.testing.assert_allclose(result.travel_time, budget, rtol=1e-12)
        np.testing.assert_allclose(result.x, ref.x, rtol=1e-3)
        np.testing.assert_allclose(result.z, ref.z, rtol=1e-3)

    def test_mirror_symmetry(self):
        right = trace(self.model, 0.0, 20.0, 0.3)
        left = trace(self.model, 0.0, -20.0, 0.3)
        np.testing.assert_allclose(left.x, -right.x, rtol=1e-12)
        np.testing.assert_allclose(left.z, right.z, rtol=1e-12)

    def test_up_and_down_from_node(self):
        down = trace(self.model, 100.0, 10.0, 10.0)
        up = trace(self.model, 100.0, 170.0, 10.0)
        assert down.status is RayStatus.EXITED_BOTTOM
        assert up.status is RayStatus.EXITED_TOP
        assert up.z == 0.0


class TestBoundaryRejection:
    """Sources outside the model are rejected before tracing."""

    def setup_method(self):
        self.model = VelocityModel(SCENARIO_DEPTHS, SCENARIO_VELOCITIES)

    @pytest.mark.parametrize("depth", [-0.01, 1000.01, np.nan])
    def test_out_of_model(self, depth):
        result = trace(self.model, depth, 20.0, 1.0)
        assert result.status is RayStatus.ERROR
        assert result.error is ErrorKind.OUT_OF_MODEL
        assert result.error_code == 2
        assert result.message

    @pytest.mark.parametrize("depth", [0.0, 1000.0])
    def test_limits_inside(self, depth):
        assert trace(self.model, depth, 20.0, 0.01).ok

    def test_failure_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="svp_raytrace"):
            trace(self.model, -5.0, 20.0, 1.0)
        assert any("OUT_OF_MODEL" in record.getMessage() for record in caplog.records)

    def test_bad_arguments_raise(self):
        with pytest.raises(ValueError):
            trace(self.model, 0.0, 20.0, np.nan)
        with pytest.raises(ValueError):
            trace(self.model, 0.0, 20.0, 1.0, max_path_points=-1)


class TestLaunchCorrection:
    """Surface sound-velocity correction of the launch angle."""

    def setup_method(self):
        self.model = VelocityModel(SCENARIO_DEPTHS, SCENARIO_VELOCITIES)

    def test_resolve_mode(self):
        assert resolve_ssv_mode(0.0) is SSVMode.NONE
        assert resolve_ssv_mode(1480.0) is SSVMode.INCORRECT
        assert resolve_ssv_mode(1480.0, SSVMode.CORRECT) is SSVMode.CORRECT
        with pytest.raises(ValueError):
            resolve_ssv_mode(0.0, SSVMode.CORRECT)

    def test_incorrect_mode_preserves_p0(self):
        result = trace(self.model, 0.0, 30.0, 0.1, surface_velocity=1480.0)
        assert result.ok
        np.testing.assert_allclose(result.ray_parameter, 0.5 / 1480.0, rtol=1e-12)

    def test_incorrect_mode_with_null_angle(self):
        angle = correct_launch_angle(30.0, 1500.0, 1500.0, 10.0, SSVMode.INCORRECT)
        np.testing.assert_allclose(angle, 30.0, rtol=1e-12)
        angle = correct_launch_angle(30.0, 1520.0, 1500.0, 10.0, SSVMode.INCORRECT)
        expected = 10.0 + np.degrees(np.arcsin(np.sin(np.radians(20.0)) * 1520.0 / 1500.0))
        np.testing.assert_allclose(angle, expected, rtol=1e-12)

    def test_correct_mode_ignores_null_angle(self):
        a = correct_launch_angle(30.0, 1520.0, 1500.0, 0.0, SSVMode.CORRECT)
        b = correct_launch_angle(30.0, 1520.0, 1500.0, 25.0, SSVMode.CORRECT)
        assert a == b
        expected = np.degrees(np.arcsin(0.5 * 1520.0 / 1500.0))
        np.testing.assert_allclose(a, expected, rtol=1e-12)

    @pytest.mark.parametrize("angle", [120.0, -120.0])
    def test_correct_mode_keeps_upward_beams_up(self, angle):
        corrected = correct_launch_angle(angle, 1500.0, 1500.0, 0.0, SSVMode.CORRECT)
        np.testing.assert_allclose(corrected, angle, rtol=1e-12)

    def test_none_mode_passthrough(self):
        assert correct_launch_angle(42.0, 1500.0, 1400.0, 5.0, SSVMode.NONE) == 42.0

    def test_total_internal_reflection(self):
        with pytest.raises(InvalidAngleError):
            correct_launch_angle(80.0, 1500.0, 1400.0, 0.0, SSVMode.INCORRECT)
        result = trace(self.model, 0.0, 80.0, 1.0, surface_velocity=1400.0)
        assert result.status is RayStatus.ERROR
        assert result.error is ErrorKind.INVALID_ANGLE

    @pytest.mark.parametrize("angle", [180.5, -200.0, np.nan, np.inf])
    def test_angle_out_of_range(self, angle):
        result = trace(self.model, 0.0, angle, 1.0)
        assert result.error is ErrorKind.INVALID_ANGLE

    def test_prepare_launch(self):
        launch = prepare_launch(self.model, 50.0, -30.0)
        assert launch.layer == 0
        np.testing.assert_allclose(launch.velocity, 1525.0)
        np.testing.assert_allclose(launch.p, 0.5 / 1525.0, rtol=1e-12)
        assert launch.direction is Direction.DOWN
        assert launch.sign_x == -1

    def test_prepare_launch_vertical(self):
        assert prepare_launch(self.model, 50.0, 0.0).p == 0.0
        up = prepare_launch(self.model, 50.0, 180.0)
        assert up.p == 0.0
        assert up.direction is Direction.UP


class TestRayTracer:
    """The reusable tracer object."""

    def setup_method(self):
        self.model = DEEP_OCEAN.build()
        self.tracer = RayTracer(self.model)

    def test_matches_functional_trace(self):
        a = self.tracer.trace(10.0, 40.0, 2.0)
        b = trace(self.model, 10.0, 40.0, 2.0)
        assert a.x == b.x
        assert a.z == b.z
        assert a.status is b.status

    def test_concurrent_traces(self):
        angles = np.linspace(-75.0, 75.0, 31)
        expected = [self.tracer.trace(10.0, a, 2.0) for a in angles]
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda a: self.tracer.trace(10.0, a, 2.0), angles))
        for r, e in zip(results, expected):
            assert r.x == e.x
            assert r.z == e.z
            assert r.status is e.status

    def test_source_angle_recorded(self):
        result = self.tracer.trace(10.0, 33.0, 0.1)
        assert result.source_angle == 33.0
        assert result.n_iterations >= 1
