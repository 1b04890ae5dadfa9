"""
SQUAD Perturbation Simulator
Continuous dynamics of Boolean regulatory networks under timed perturbations
"""

__version__ = "0.1.0"

from . import exceptions
from . import config
from . import sigmoid
from . import logic
from . import network
from . import perturbation
from . import trajectory
from . import engine
from . import simulate
from . import validation

from .config import ShapeParameters, SimulationConfig
from .engine import ODEIntegrator, simulate_network
from .exceptions import (
    InvalidParameterError,
    InvalidPerturbationError,
    MissingNodeError,
    NumericInstabilityError,
    RuleSyntaxError,
    SolverError,
    SquadError,
)
from .logic import And, Const, Not, Or, Var, parse_rule
from .network import EXAMPLE_LABELS, NetworkModel, example_network
from .perturbation import Perturbation, build_event_table, event_windows, perturb_nodes
from .sigmoid import squad_rate, steady_state
from .simulate import PerturbationSimulator
from .trajectory import Trajectory

__all__ = [
    'exceptions',
    'config',
    'sigmoid',
    'logic',
    'network',
    'perturbation',
    'trajectory',
    'engine',
    'simulate',
    'validation',
    'ShapeParameters',
    'SimulationConfig',
    'ODEIntegrator',
    'simulate_network',
    'SquadError',
    'InvalidParameterError',
    'InvalidPerturbationError',
    'MissingNodeError',
    'NumericInstabilityError',
    'RuleSyntaxError',
    'SolverError',
    'And',
    'Const',
    'Not',
    'Or',
    'Var',
    'parse_rule',
    'EXAMPLE_LABELS',
    'NetworkModel',
    'example_network',
    'Perturbation',
    'build_event_table',
    'event_windows',
    'perturb_nodes',
    'squad_rate',
    'steady_state',
    'PerturbationSimulator',
    'Trajectory',
]
