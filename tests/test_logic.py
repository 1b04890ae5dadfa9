"""Tests for fuzzy-logic expressions and the rule parser."""

import pytest
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from squadsim.exceptions import MissingNodeError, RuleSyntaxError
from squadsim.logic import And, Const, Not, Or, Var, as_expression, parse_rule


class TestExpressionEvaluation:
    """Test min/max/complement semantics."""

    def setup_method(self):
        """Setup test state."""
        self.state = {"A": 0.2, "B": 0.7, "X": 0.9}

    def test_var(self):
        assert Var("A").evaluate(self.state) == 0.2

    def test_and_is_min(self):
        assert And(Var("A"), Var("B"), Var("X")).evaluate(self.state) == 0.2

    def test_or_is_max(self):
        assert Or(Var("A"), Var("B")).evaluate(self.state) == 0.7

    def test_not_is_complement(self):
        assert Not(Var("B")).evaluate(self.state) == pytest.approx(0.3)

    def test_const(self):
        assert Const(0.4).evaluate({}) == 0.4

    def test_nested(self):
        """Test rule of node A in the example network."""
        rule = And(Or(Var("X"), Var("A")), Not(Var("B")))
        assert rule.evaluate(self.state) == pytest.approx(0.3)

    def test_missing_node(self):
        """Test evaluating against an incomplete state."""
        with pytest.raises(MissingNodeError):
            Var("Z").evaluate(self.state)

    def test_references(self):
        rule = And(Or(Var("X"), Var("A")), Not(Var("B")), Const(1.0))
        assert rule.references() == frozenset({"X", "A", "B"})

    def test_operator_overloads(self):
        """Test &, |, ~ build the same trees."""
        a, b, x = Var("A"), Var("B"), Var("X")
        assert ((x | a) & ~b) == And(Or(x, a), Not(b))

    def test_flattening(self):
        """Test nested ANDs collapse into one node."""
        rule = Var("A") & Var("B") & Var("X")
        assert isinstance(rule, And)
        assert len(rule.operands) == 3

    def test_combinator_needs_two_operands(self):
        with pytest.raises(RuleSyntaxError):
            And(Var("A"))


class TestRuleParser:
    """Test parsing of rule strings."""

    def setup_method(self):
        self.expected = And(Or(Var("X"), Var("A")), Not(Var("B")))

    @pytest.mark.parametrize("text", [
        "min(max(X, A), 1 - B)",
        "(X | A) & !B",
        "(X | A) & ~B",
        "(X or A) and not B",
        "(X OR A) AND NOT B",
        "AND(OR(X, A), NOT(B))",
        "(X || A) && !B",
    ])
    def test_equivalent_notations(self, text):
        """Test every supported notation gives the same tree."""
        assert parse_rule(text) == self.expected

    def test_single_name(self):
        assert parse_rule("B") == Var("B")

    def test_constants(self):
        assert parse_rule("0.25") == Const(0.25)
        assert parse_rule("1") == Const(1.0)
        assert parse_rule("True") == Const(1.0)

    def test_complement_of_expression(self):
        assert parse_rule("1 - max(A, B)") == Not(Or(Var("A"), Var("B")))

    def test_round_trip_through_str(self):
        """Test printed form parses back to the same tree."""
        assert parse_rule(str(self.expected)) == self.expected
        assert str(self.expected) == "min(max(X, A), 1 - B)"

    @pytest.mark.parametrize("text", ["", "   ", "A +", "A + B", "2 * A", "foo(A, B)",
                                      "'A'", "A < B", "min(A, key=B)"])
    def test_invalid_rules(self, text):
        with pytest.raises(RuleSyntaxError):
            parse_rule(text)

    def test_as_expression(self):
        assert as_expression("A & B") == And(Var("A"), Var("B"))
        assert as_expression(0.5) == Const(0.5)
        assert as_expression(Var("A")) == Var("A")
        with pytest.raises(RuleSyntaxError):
            as_expression(None)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
