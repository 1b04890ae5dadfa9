"""
Sigmoid Transform

Standardized qualitative dynamical systems (SQUAD) rate function.
"""

import numpy as np
from scipy.special import expit
from typing import Union

from .exceptions import InvalidParameterError

ArrayLike = Union[float, np.ndarray]

# Largest exponent passed to np.exp; exp(700) is still finite in float64
_MAX_EXPONENT = 700.0


def squad_rate(x: ArrayLike, w: ArrayLike, h: float, gamma: float) -> ArrayLike:
    """
    Instantaneous rate of change of a node under the SQUAD transform.

    The reference form is::

        (-exp(0.5h) + exp(-h(w - 0.5))) / ((1 - exp(0.5h)) * (1 + exp(-h(w - 0.5)))) - gamma * x

    Dividing numerator and denominator by ``exp(0.5h)`` gives the equivalent

        (1 - exp(-h w)) / (1 - exp(-h/2)) * expit(h (w - 0.5)) - gamma * x

    which stays finite for steepness values in the hundreds. ``h`` must be
    strictly positive; the caller is responsible for that (see
    ``ShapeParameters``).

    Parameters
    ----------
    x : float or np.ndarray
        Current activation of the node
    w : float or np.ndarray
        Fuzzy-logic input weight of the node
    h : float
        Sigmoid steepness (> 0)
    gamma : float
        Linear decay rate (>= 0)

    Returns
    -------
    rate : float or np.ndarray
        dx/dt, broadcast over ``x`` and ``w``
    """
    w = np.asarray(w, dtype=np.float64)
    x = np.asarray(x, dtype=np.float64)

    numerator = -np.expm1(np.minimum(-h * w, _MAX_EXPONENT))
    denominator = -np.expm1(-0.5 * h)
    activation = numerator / denominator * expit(h * (w - 0.5))

    rate = activation - gamma * x
    if rate.ndim == 0:
        return float(rate)
    return rate


def steady_state(w: ArrayLike, h: float, gamma: float) -> ArrayLike:
    """Fixed point of a node whose input weight is held constant (gamma > 0)."""
    if gamma <= 0:
        raise InvalidParameterError("steady state only exists for gamma > 0")
    return squad_rate(0.0, w, h, 0.0) / gamma
