"""Simulation configuration for SQUAD network dynamics.

Defines the shared sigmoid shape parameters (h, gamma) and the time grid and
solver settings used by a single simulation run. Defaults reproduce the
reference setup: h=50, gamma=1, step 0.01 over [0, 30], tolerances 1e-5.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import numpy as np

from .exceptions import InvalidParameterError

TORCHDIFFEQ_METHODS = ("dopri5", "dopri8", "bosh3", "adaptive_heun", "rk4", "euler", "midpoint")
SCIPY_METHODS = ("LSODA", "RK45", "RK23", "DOP853", "BDF", "Radau")
BACKENDS = {"torchdiffeq": TORCHDIFFEQ_METHODS, "scipy": SCIPY_METHODS}


@dataclass(frozen=True)
class ShapeParameters:
    """Sigmoid steepness ``h`` and linear decay ``gamma`` shared by all nodes."""
    h: float = 50.0
    gamma: float = 1.0

    def __post_init__(self) -> None:
        if not np.isfinite(self.h) or self.h <= 0:
            raise InvalidParameterError(f"h must be positive; got {self.h}")
        if not np.isfinite(self.gamma) or self.gamma < 0:
            raise InvalidParameterError(f"gamma must be non-negative; got {self.gamma}")


@dataclass(frozen=True)
class SimulationConfig:
    """Time grid, solver settings and shape parameters for one run."""
    t_max: float = 30.0
    step_size: float = 0.01
    rtol: float = 1e-5
    atol: float = 1e-5
    method: str = "dopri5"
    backend: str = "torchdiffeq"
    shape: ShapeParameters = field(default_factory=ShapeParameters)

    def __post_init__(self) -> None:
        if not np.isfinite(self.step_size) or self.step_size <= 0:
            raise InvalidParameterError(f"step_size must be positive and finite; got {self.step_size}")
        if not np.isfinite(self.t_max) or self.t_max <= 0:
            raise InvalidParameterError(f"t_max must be positive and finite; got {self.t_max}")
        check_solver_settings(self.method, self.backend, self.rtol, self.atol)
        if not isinstance(self.shape, ShapeParameters):
            raise InvalidParameterError("shape must be a ShapeParameters instance")

    @property
    def n_steps(self) -> int:
        """Number of steps on the sample grid (the last point may fall short of t_max)."""
        return int(np.floor(self.t_max / self.step_size + 1e-9))

    def time_grid(self) -> np.ndarray:
        """Sample times 0, step, 2*step, ... up to t_max."""
        return snap_to_grid(np.arange(self.n_steps + 1) * self.step_size, self.step_size)

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "SimulationConfig":
        """
        Build a configuration from a plain mapping.

        Shape parameters may be given as a nested ``shape`` mapping or as flat
        ``h`` / ``gamma`` keys. Unknown keys are rejected.
        """
        values = dict(values)
        shape_values = dict(values.pop("shape", {}) or {})
        for key in ("h", "gamma"):
            if key in values:
                shape_values[key] = values.pop(key)
        known = {"t_max", "step_size", "rtol", "atol", "method", "backend"}
        unknown = set(values) - known
        if unknown:
            raise InvalidParameterError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(shape=ShapeParameters(**shape_values), **values)


def check_solver_settings(method: str, backend: str, rtol: float, atol: float) -> None:
    """Raise InvalidParameterError unless ``method`` belongs to ``backend`` and both tolerances are positive."""
    if backend not in BACKENDS:
        raise InvalidParameterError(f"backend must be one of {sorted(BACKENDS)}; got '{backend}'")
    if method not in BACKENDS[backend]:
        raise InvalidParameterError(f"method '{method}' is not available for backend '{backend}'")
    for name, value in (("rtol", rtol), ("atol", atol)):
        if not np.isfinite(value) or value <= 0:
            raise InvalidParameterError(f"{name} must be positive and finite; got {value}")


def _grid_decimals(step_size: float) -> int:
    if not np.isfinite(step_size) or step_size <= 0:
        raise InvalidParameterError(f"step_size must be positive and finite; got {step_size}")
    # keep 10 decimals past the step so 10 + 0.01 compares equal to 10.01
    return max(0, int(np.ceil(-np.log10(step_size)))) + 10


def snap_to_grid(times, step_size: float) -> np.ndarray:
    """Round times to the nearest multiple of ``step_size``."""
    decimals = _grid_decimals(step_size)
    times = np.asarray(times, dtype=np.float64)
    return np.round(np.round(times / step_size) * step_size, decimals)


def ceil_to_grid(times, step_size: float) -> np.ndarray:
    """Smallest multiple of ``step_size`` not before each time."""
    decimals = _grid_decimals(step_size)
    times = np.asarray(times, dtype=np.float64)
    return np.round(np.ceil(times / step_size - 1e-9) * step_size, decimals)
