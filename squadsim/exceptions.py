"""
Exceptions Module

Error types raised by the simulator.
"""


class SquadError(Exception):
    """Base class for all simulator errors."""


class InvalidParameterError(SquadError, ValueError):
    """Shape parameter, step size or solver setting out of range."""


class InvalidPerturbationError(SquadError, ValueError):
    """Perturbation lists of different lengths or a bad duration."""


class MissingNodeError(SquadError, KeyError):
    """A node name is referenced but not defined."""

    def __init__(self, node: str, context: str = ""):
        self.node = node
        self.context = context
        message = f"Node '{node}' not found"
        if context:
            message += f" ({context})"
        super().__init__(message)

    def __str__(self):
        # KeyError quotes its argument otherwise
        return self.args[0]


class RuleSyntaxError(SquadError, ValueError):
    """A logic rule string could not be parsed."""


class SolverError(SquadError, RuntimeError):
    """The ODE solver reported a failure."""


class NumericInstabilityError(SquadError, RuntimeWarning):
    """
    Non-finite derivative values.

    Advisory: emitted through ``warnings.warn`` rather than raised.
    """
