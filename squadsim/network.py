"""
Network Model

Continuous SQUAD dynamics of a regulatory network defined by logic rules.
"""

import numpy as np
from typing import Dict, Mapping, Tuple

from .config import ShapeParameters
from .exceptions import MissingNodeError, RuleSyntaxError
from .logic import Expression, Rule, as_expression
from .sigmoid import squad_rate


class NetworkModel:
    """
    Regulatory network with one fuzzy-logic rule per node.

    Each node ``i`` follows dx_i/dt = squad_rate(x_i, w_i, h, gamma), where
    ``w_i`` is its rule evaluated on the current state. The topology is fixed
    at construction and the model holds no run-specific state, so one
    instance can be shared by any number of simulations.
    """

    def __init__(self, rules: Mapping[str, Rule]):
        """
        Parameters
        ----------
        rules : mapping
            Node name -> rule. A rule is an ``Expression``, a rule string
            (see ``parse_rule``) or a constant weight.
        """
        if not rules:
            raise RuleSyntaxError("A network needs at least one node")

        compiled: Dict[str, Expression] = {}
        for node, rule in rules.items():
            if not isinstance(node, str) or not node:
                raise RuleSyntaxError(f"Node names must be non-empty strings; got {node!r}")
            compiled[node] = as_expression(rule)

        for node, expression in compiled.items():
            for reference in sorted(expression.references()):
                if reference not in compiled:
                    raise MissingNodeError(reference, f"referenced by the rule of '{node}'")

        self._rules = compiled
        self._nodes: Tuple[str, ...] = tuple(compiled)
        self._index = {node: i for i, node in enumerate(self._nodes)}

    @property
    def nodes(self) -> Tuple[str, ...]:
        """Node names in definition order; this is the solver's vector order."""
        return self._nodes

    @property
    def rules(self) -> Dict[str, Expression]:
        return dict(self._rules)

    def __len__(self):
        return len(self._nodes)

    def __contains__(self, node):
        return node in self._index

    def __repr__(self):
        return f"NetworkModel(nodes={list(self._nodes)})"

    def index(self, node: str) -> int:
        """Position of ``node`` in the state vector."""
        try:
            return self._index[node]
        except KeyError:
            raise MissingNodeError(node, "not part of the network") from None

    def _check_state(self, state: Mapping[str, float]) -> None:
        for node in self._nodes:
            if node not in state:
                raise MissingNodeError(node, "missing from state")

    def weights(self, state: Mapping[str, float]) -> Dict[str, float]:
        """Fuzzy input weight ``w`` of every node."""
        self._check_state(state)
        return {node: float(rule.evaluate(state)) for node, rule in self._rules.items()}

    def derivatives(self, state: Mapping[str, float], params: ShapeParameters) -> Dict[str, float]:
        """
        Derivative of every node at the given state.

        Parameters
        ----------
        state : mapping
            Node name -> current activation; every node is required, extra
            keys are ignored. Not modified.
        params : ShapeParameters
            Steepness and decay

        Returns
        -------
        derivatives : dict
            Node name -> dx/dt
        """
        weights = self.weights(state)
        return {
            node: squad_rate(float(state[node]), weights[node], params.h, params.gamma)
            for node in self._nodes
        }

    def vector_field(self, t: float, x: np.ndarray, params: ShapeParameters) -> np.ndarray:
        """
        Positional form of ``derivatives`` for ODE solvers.

        Parameters
        ----------
        t : float
            Current time (unused, the network is autonomous)
        x : np.ndarray
            State vector (n_nodes,) in ``nodes`` order
        params : ShapeParameters
            Steepness and decay

        Returns
        -------
        dxdt : np.ndarray
            Time derivative (n_nodes,)
        """
        x = np.asarray(x, dtype=np.float64)
        state = dict(zip(self._nodes, x.tolist()))
        w = np.fromiter((rule.evaluate(state) for rule in self._rules.values()),
                        dtype=np.float64, count=len(self._nodes))
        return squad_rate(x, w, params.h, params.gamma)

    def state_vector(self, state: Mapping[str, float]) -> np.ndarray:
        """Convert a node -> value mapping to a vector in ``nodes`` order."""
        self._check_state(state)
        return np.array([float(state[node]) for node in self._nodes], dtype=np.float64)

    def state_mapping(self, x: np.ndarray) -> Dict[str, float]:
        """Convert a state vector back to a node -> value mapping."""
        x = np.asarray(x, dtype=np.float64)
        if x.shape != (len(self._nodes),):
            raise ValueError(f"Expected a vector of length {len(self._nodes)}; got shape {x.shape}")
        return dict(zip(self._nodes, x.tolist()))


# Reference network: two mutually repressing nodes A and B, inputs X and Y,
# output Z. X drives A, Y drives B, Z reports B and shuts X off.
EXAMPLE_RULES = {
    "A": "min(max(X, A), 1 - B)",
    "B": "min(max(Y, B), 1 - A)",
    "X": "min(A, 1 - Z)",
    "Y": "min(B, 1 - A)",
    "Z": "B",
}

EXAMPLE_LABELS = {
    "A": "Node A",
    "B": "Node B",
    "X": "In X",
    "Y": "In Y",
    "Z": "Out Z",
}


def example_network() -> NetworkModel:
    """Five-node network (A, B, X, Y, Z) used in the perturbation examples."""
    return NetworkModel(EXAMPLE_RULES)
