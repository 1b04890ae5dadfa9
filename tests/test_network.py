"""Tests for the network model."""

import pytest
import numpy as np
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from squadsim.config import ShapeParameters
from squadsim.exceptions import MissingNodeError, RuleSyntaxError
from squadsim.logic import Const, Var
from squadsim.network import EXAMPLE_LABELS, NetworkModel, example_network
from squadsim.sigmoid import squad_rate


class TestNetworkConstruction:
    """Test building networks from rules."""

    def test_example_network_nodes(self):
        net = example_network()
        assert net.nodes == ("A", "B", "X", "Y", "Z")
        assert set(EXAMPLE_LABELS) == set(net.nodes)

    def test_unknown_reference(self):
        """Test rule referencing an undefined node."""
        with pytest.raises(MissingNodeError) as info:
            NetworkModel({"A": "min(A, Q)"})
        assert info.value.node == "Q"

    def test_empty_network(self):
        with pytest.raises(RuleSyntaxError):
            NetworkModel({})

    def test_mixed_rule_types(self):
        """Test strings, expressions and constants can be combined."""
        net = NetworkModel({"A": "B & !C", "B": Var("A"), "C": 0.3})
        assert net.rules["C"] == Const(0.3)
        assert net.index("B") == 1

    def test_index_of_unknown_node(self):
        with pytest.raises(MissingNodeError):
            example_network().index("Q")


class TestDerivatives:
    """Test derivative evaluation."""

    def setup_method(self):
        """Setup network and state."""
        self.net = example_network()
        self.params = ShapeParameters(h=50.0, gamma=1.0)
        self.state = {"A": 0.8, "B": 0.1, "X": 0.3, "Y": 0.6, "Z": 0.2}

    def test_weights(self):
        """Test fuzzy weights of the example rules."""
        w = self.net.weights(self.state)
        assert w["A"] == pytest.approx(min(max(0.3, 0.8), 1 - 0.1))
        assert w["B"] == pytest.approx(min(max(0.6, 0.1), 1 - 0.8))
        assert w["X"] == pytest.approx(min(0.8, 1 - 0.2))
        assert w["Y"] == pytest.approx(min(0.1, 1 - 0.8))
        assert w["Z"] == pytest.approx(0.1)

    def test_derivatives_use_transform(self):
        """Test each derivative is the transform of its weight."""
        w = self.net.weights(self.state)
        d = self.net.derivatives(self.state, self.params)
        for node in self.net.nodes:
            expected = squad_rate(self.state[node], w[node], 50.0, 1.0)
            assert d[node] == pytest.approx(expected)

    def test_same_keys(self):
        d = self.net.derivatives(self.state, self.params)
        assert set(d) == set(self.state)

    def test_zero_state_is_fixed_point(self):
        """Test all-zero state has zero derivative."""
        zero = {node: 0.0 for node in self.net.nodes}
        d = self.net.derivatives(zero, self.params)
        assert all(value == 0.0 for value in d.values())

    def test_idempotent(self):
        """Test repeated evaluation is bit-for-bit identical."""
        first = self.net.derivatives(self.state, self.params)
        second = self.net.derivatives(self.state, self.params)
        assert first == second

    def test_state_not_mutated(self):
        before = dict(self.state)
        self.net.derivatives(self.state, self.params)
        assert self.state == before

    def test_missing_state_node(self):
        """Test incomplete state raises MissingNodeError."""
        state = dict(self.state)
        del state["Z"]
        with pytest.raises(MissingNodeError):
            self.net.derivatives(state, self.params)

    def test_extra_keys_ignored(self):
        state = dict(self.state, h=3.0, gamma=9.0)
        assert self.net.derivatives(state, self.params) == self.net.derivatives(self.state, self.params)

    def test_vector_field_matches_mapping(self):
        """Test positional and mapping forms agree."""
        x = self.net.state_vector(self.state)
        v = self.net.vector_field(0.0, x, self.params)
        d = self.net.derivatives(self.state, self.params)
        np.testing.assert_allclose(v, [d[node] for node in self.net.nodes])

    def test_state_conversions(self):
        x = self.net.state_vector(self.state)
        assert self.net.state_mapping(x) == pytest.approx(self.state)
        with pytest.raises(ValueError):
            self.net.state_mapping(np.zeros(3))

    def test_shared_between_parameter_sets(self):
        """Test one model serves runs with different parameters."""
        soft = self.net.derivatives(self.state, ShapeParameters(h=5.0, gamma=0.5))
        steep = self.net.derivatives(self.state, self.params)
        assert soft != steep
        assert self.net.derivatives(self.state, self.params) == steep


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
