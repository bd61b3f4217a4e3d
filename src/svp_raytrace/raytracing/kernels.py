"""
Taichi GPU kernels for fan tracing through a layered sound-speed model.

Implements the same closed-form layer-by-layer state machine as the CPU
tracer using Taichi lang, one thread per beam. Launch-angle correction
and source lookup run in Python before the launch (they are cheap and
may fail per beam); the kernel only propagates.

Architecture
- @ti.func helpers: _acosh, _sinh, _cosh, _beta, _segment
- @ti.kernel trace_fan_kernel: 1D parallel loop over beams
- Python wrapper: trace_fan_gpu() converts NumPy arrays, launches kernel

All arithmetic uses float64 for precision.
"""

import numpy as np
from typing import Optional, Union

from svp_raytrace.config import TraceConfig
from svp_raytrace.errors import RayTraceError
from svp_raytrace.model.velocity_model import VelocityModel
from svp_raytrace.raytracing.cpu_ref import FanResult, broadcast_travel_times
from svp_raytrace.raytracing.state import ERROR_CODES, RayStatus, SSVMode
from svp_raytrace.raytracing.tracer import prepare_launch, resolve_ssv_mode

try:
    import taichi as ti
    _TAICHI_AVAILABLE = True
except ImportError:  # pragma: no cover
    _TAICHI_AVAILABLE = False
    ti = None  # type: ignore[assignment]

# — Taichi initialization ————————————————————————————————————————————————————
# Lazily initialized; call ensure_initialized() before any kernel use.
_ti_initialized = False


def ensure_initialized(arch: Optional[str] = None) -> None:
    """Initialize Taichi runtime if not already done.

    Parameters
    ----------
    arch : str, optional
        Architecture: 'gpu', 'cuda', 'vulkan', 'cpu'.
        Default: try GPU, fall back to CPU.
    """
    global _ti_initialized
    if _ti_initialized:
        return
    if not _TAICHI_AVAILABLE:
        return  # CPU-only mode; kernels will not be available

    if arch == "cuda":
        ti.init(arch=ti.cuda, default_fp=ti.f64)
    elif arch == "vulkan":
        ti.init(arch=ti.vulkan, default_fp=ti.f64)
    elif arch == "cpu":
        ti.init(arch=ti.cpu, default_fp=ti.f64)
    else:
        ti.init(arch=ti.gpu, default_fp=ti.f64)

    _ti_initialized = True


def is_available() -> bool:
    """Whether the optional taichi dependency is installed."""
    return _TAICHI_AVAILABLE


# ——————————————————————————————————————————————————————————————————————————————

INF_TIME = 1e30  # Sentinel for segments that never reach a boundary

# Status codes written by the kernel (match RayStatus)
STATUS_ERROR          = int(RayStatus.ERROR)
STATUS_EXITED_BOTTOM  = int(RayStatus.EXITED_BOTTOM)
STATUS_EXITED_TOP     = int(RayStatus.EXITED_TOP)
STATUS_TIME_EXHAUSTED = int(RayStatus.TIME_EXHAUSTED)
ERROR_ITERATION_LIMIT = 4

# ——————————————————————————————————————————————————————————————————————————————
# Taichi device functions (@ti.func)
# ——————————————————————————————————————————————————————————————————————————————

if _TAICHI_AVAILABLE:

    @ti.func
    def _acosh(y):
        return ti.log(y + ti.sqrt(y * y - 1.0))

    @ti.func
    def _sinh(a):
        return 0.5 * (ti.exp(a) - ti.exp(-a))

    @ti.func
    def _cosh(a):
        return 0.5 * (ti.exp(a) + ti.exp(-a))

    @ti.func
    def _beta(p, v):
        """Arc coordinate magnitude arccosh(1/(p v)), clamped at the turning point."""
        return _acosh(ti.max(1.0, 1.0 / (p * v)))

    @ti.func
    def _segment(x, z, tt, dirn, p, zt, zb, vt, vb, g, is_grad, cos_tol):
        """Propagate through one layer.

        Returns
        -------
        vec5 : (x, z, dt, layer_delta, turned)
            New unsigned x, depth, time spent, +1/-1/0 layer change and
            1.0 if a turning point was crossed.
        """
        x_new = x
        z_new = z
        dt    = tt
        delta = 0.0
        flip  = 0.0

        # far boundary lies in the direction of travel
        far_z  = zb
        far_v  = vb
        back_z = zt
        back_v = vt
        if dirn < 0.0:
            far_z  = zt
            far_v  = vt
            back_z = zb
            back_v = vb

        if is_grad == 0:
            # — straight line
            sin_t = ti.min(p * vt, 1.0)
            cos_t = ti.sqrt(1.0 - sin_t * sin_t)
            dt_b  = INF_TIME
            if cos_t >= cos_tol:
                dt_b = ti.max(0.0, (far_z - z) / (dirn * vt * cos_t))
            if p * vt > 1.0 and z == back_z:
                # cannot enter the layer; turn on the boundary
                dt    = 0.0
                delta = -dirn
                flip  = 1.0
            elif dt_b <= tt:
                x_new = x + vt * sin_t * dt_b
                z_new = far_z
                dt    = dt_b
                delta = dirn
            else:
                x_new = x + vt * sin_t * tt
                z_new = z + dirn * vt * cos_t * tt

        elif p <= 0.0:
            # — vertical ray in a gradient layer
            v_i  = vt + g * (z - zt)
            dt_b = ti.abs(ti.log(far_v / v_i) / g)
            if dt_b <= tt:
                z_new = far_z
                dt    = dt_b
                delta = dirn
            else:
                v_f   = v_i * ti.exp(dirn * g * tt)
                z_new = zt + (v_f - vt) / g

        else:
            # — circular arc
            rate    = ti.abs(g)
            v_i     = vt + g * (z - zt)
            beta_i  = _beta(p, v_i)
            beta_f  = 0.0
            end_dir = dirn
            exited  = 0
            exit_z  = far_z
            exit_v  = far_v

            if dirn * g > 0.0 and p * far_v >= 1.0:
                # approaching a turning point inside the layer
                dt_turn = beta_i / rate
                if dt_turn > tt:
                    beta_f = beta_i - rate * tt
                else:
                    end_dir   = -dirn
                    flip      = 1.0
                    beta_back = _beta(p, back_v)
                    dt_exit   = dt_turn + beta_back / rate
                    if dt_exit <= tt:
                        beta_f = beta_back
                        dt     = dt_exit
                        exited = 1
                        exit_z = back_z
                        exit_v = back_v
                    else:
                        beta_f = ti.max(0.0, rate * tt - beta_i)
            elif dirn * g > 0.0:
                # approaching, but the turning point lies beyond the far side
                beta_far = _beta(p, far_v)
                dt_exit  = ti.max(0.0, (beta_i - beta_far) / rate)
                if dt_exit <= tt:
                    beta_f = beta_far
                    dt     = dt_exit
                    exited = 1
                else:
                    beta_f = beta_i - rate * tt
            else:
                # receding from the turning point
                beta_far = _beta(p, far_v)
                dt_exit  = ti.max(0.0, (beta_far - beta_i) / rate)
                if dt_exit <= tt:
                    beta_f = beta_far
                    dt     = dt_exit
                    exited = 1
                else:
                    beta_f = beta_i + rate * tt

            s_i = -dirn * beta_i
            s_f = -end_dir * beta_f
            v_f = 1.0 / (p * _cosh(beta_f))
            if exited == 1:
                v_f   = exit_v
                z_new = exit_z
                delta = end_dir
            else:
                z_new = zt + (v_f - vt) / g
            x_new = x + p * v_i * v_f * _sinh(s_f - s_i) / g

        return ti.Vector([x_new, z_new, dt, delta, flip])

    # ——————————————————————————————————————————————————————————————————————————
    # Main GPU kernel
    # ——————————————————————————————————————————————————————————————————————————

    @ti.kernel
    def trace_fan_kernel(
        top_depth:    ti.types.ndarray(),
        bottom_depth: ti.types.ndarray(),
        top_vel:      ti.types.ndarray(),
        bottom_vel:   ti.types.ndarray(),
        gradient:     ti.types.ndarray(),
        is_gradient:  ti.types.ndarray(),
        n_layer:      int,
        p_arr:        ti.types.ndarray(),
        dir_arr:      ti.types.ndarray(),
        layer_arr:    ti.types.ndarray(),
        active:       ti.types.ndarray(),
        z_source:     float,
        budget:       ti.types.ndarray(),
        x_out:        ti.types.ndarray(),
        z_out:        ti.types.ndarray(),
        t_out:        ti.types.ndarray(),
        status_out:   ti.types.ndarray(),
        error_out:    ti.types.ndarray(),
        n_rays:       int,
        max_iter:     int,
        cos_tol:      float,
    ):
        """GPU kernel: trace every active beam to a terminal state.

        Each thread handles one beam independently. The outer for loop is
        automatically parallelized by Taichi.

        Parameters (all as flat arrays for GPU compatibility)
        ----------
        top_depth, bottom_depth, top_vel, bottom_vel, gradient : ndarray[n_layer]
            Layer table.
        is_gradient : ndarray[n_layer] of int32
            1 for GRADIENT layers, 0 for HOMOGENEOUS.
        p_arr, dir_arr : ndarray[n_rays]
            Ray parameter and initial direction (+1 down, -1 up).
        layer_arr, active : ndarray[n_rays] of int32
            Source layer, and 1 for beams whose launch succeeded.
        z_source : float
            Source depth.
        budget : ndarray[n_rays]
            Travel-time budget per beam.
        x_out, z_out, t_out : ndarray[n_rays]
            Output: unsigned x, depth and travel time.
        status_out, error_out : ndarray[n_rays] of int32
            Output: RayStatus and error codes (left untouched for inactive
            beams).
        """
        for i in range(n_rays):
            if active[i] == 1:
                x      = 0.0
                z      = z_source
                t      = 0.0
                tt     = budget[i]
                dirn   = dir_arr[i]
                p      = p_arr[i]
                layer  = layer_arr[i]
                iters  = 0
                status = STATUS_TIME_EXHAUSTED
                err    = 0
                done   = 0
                if tt <= 0.0:
                    done = 1

                while done == 0:
                    if layer < 0:
                        status = STATUS_EXITED_TOP
                        done   = 1
                    elif layer >= n_layer:
                        status = STATUS_EXITED_BOTTOM
                        done   = 1
                    elif iters >= max_iter:
                        status = STATUS_ERROR
                        err    = ERROR_ITERATION_LIMIT
                        done   = 1
                    else:
                        seg = _segment(
                            x, z, tt, dirn, p,
                            top_depth[layer], bottom_depth[layer],
                            top_vel[layer], bottom_vel[layer],
                            gradient[layer], is_gradient[layer], cos_tol,
                        )
                        x  = seg[0]
                        z  = seg[1]
                        t += seg[2]
                        tt = tt - seg[2]
                        if seg[4] > 0.5:
                            dirn = -dirn
                        iters += 1
                        if seg[3] == 0.0:
                            tt = 0.0
                        if tt <= 0.0:
                            status = STATUS_TIME_EXHAUSTED
                            done   = 1
                        else:
                            layer += ti.cast(seg[3], ti.i32)

                x_out[i]      = x
                z_out[i]      = z
                t_out[i]      = t
                status_out[i] = status
                error_out[i]  = err


# ——————————————————————————————————————————————————————————————————————————————
# Python wrapper functions
# ——————————————————————————————————————————————————————————————————————————————

def trace_fan_gpu(
    model:            VelocityModel,
    source_depth:     float,
    angles:           np.ndarray,
    travel_times:     Union[float, np.ndarray],
    surface_velocity: float                 = 0.0,
    null_angle:       float                 = 0.0,
    ssv_mode:         Optional[SSVMode]     = None,
    config:           Optional[TraceConfig] = None,
    arch:             Optional[str]         = None,
) -> FanResult:
    """Trace a fan of beams on the GPU.

    This is the GPU counterpart of
    :func:`~svp_raytrace.raytracing.cpu_ref.trace_fan_cpu`. It:
    1. Initializes Taichi (if needed)
    2. Corrects launch angles and locates the source per beam in Python
    3. Runs the propagation kernel over all beams whose launch succeeded

    Parameters
    ----------
    model : VelocityModel
        Shared sound-speed model.
    source_depth : float
        Transducer depth in meters.
    angles : np.ndarray, shape (n_beams,)
        Signed launch angles in degrees.
    travel_times : float or np.ndarray, shape (n_beams,)
        One-way travel time per beam, or one value for all beams.
    surface_velocity, null_angle, ssv_mode :
        Launch-angle correction, as for :func:`~svp_raytrace.raytracing.trace`.
    config : TraceConfig, optional
    arch : str, optional
        Taichi architecture override.

    Returns
    -------
    FanResult

    Raises
    ------
    ImportError
        If taichi is not installed.
    """
    if not _TAICHI_AVAILABLE:
        raise ImportError(
            "trace_fan_gpu requires taichi; install with `pip install svp-raytrace[gpu]`"
        )
    ensure_initialized(arch)

    config = config if config is not None else model.config
    mode = resolve_ssv_mode(surface_velocity, ssv_mode)

    angles = np.ascontiguousarray(angles, dtype=np.float64).ravel()
    times  = broadcast_travel_times(angles, travel_times)
    n_rays = angles.size

    # Prepare per-beam launch arrays
    p_arr     = np.zeros(n_rays, dtype=np.float64)
    dir_arr   = np.ones(n_rays,  dtype=np.float64)
    layer_arr = np.zeros(n_rays, dtype=np.int32)
    active    = np.zeros(n_rays, dtype=np.int32)
    sign_x    = np.ones(n_rays,  dtype=np.float64)

    x_out      = np.zeros(n_rays, dtype=np.float64)
    z_out      = np.full(n_rays, float(source_depth), dtype=np.float64)
    t_out      = np.zeros(n_rays, dtype=np.float64)
    status_out = np.full(n_rays, STATUS_ERROR, dtype=np.int32)
    error_out  = np.zeros(n_rays, dtype=np.int32)

    for i in range(n_rays):
        try:
            launch = prepare_launch(
                model, source_depth, float(angles[i]), surface_velocity, null_angle, mode
            )
        except RayTraceError as exc:
            error_out[i] = ERROR_CODES[exc.kind]
            continue
        p_arr[i]     = launch.p
        dir_arr[i]   = float(launch.direction)
        layer_arr[i] = launch.layer
        sign_x[i]    = launch.sign_x
        active[i]    = 1

    if active.any():
        layers = model.layers
        top_depth    = np.ascontiguousarray([l.top_depth for l in layers], dtype=np.float64)
        bottom_depth = np.ascontiguousarray([l.bottom_depth for l in layers], dtype=np.float64)
        top_vel      = np.ascontiguousarray([l.top_velocity for l in layers], dtype=np.float64)
        bottom_vel   = np.ascontiguousarray([l.bottom_velocity for l in layers], dtype=np.float64)
        gradient     = np.ascontiguousarray([l.gradient for l in layers], dtype=np.float64)
        is_gradient  = np.ascontiguousarray([int(l.is_gradient) for l in layers], dtype=np.int32)

        trace_fan_kernel(
            top_depth, bottom_depth,
            top_vel, bottom_vel,
            gradient, is_gradient, len(layers),
            p_arr, dir_arr, layer_arr, active,
            float(source_depth), times,
            x_out, z_out, t_out, status_out, error_out,
            n_rays, config.max_iterations(len(layers)),
            config.vertical_cos_tolerance,
        )

    return FanResult(
        angles=angles,
        x=sign_x * x_out,
        z=z_out,
        travel_time=t_out,
        status=status_out,
        error=error_out,
    )
