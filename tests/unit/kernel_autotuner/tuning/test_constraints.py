"""Tests for constraint parsing and evaluation."""

from __future__ import annotations

import pytest

from kernel_autotuner.tuning.constraints import (
    ArithmeticOperator,
    BinaryExpression,
    Constant,
    Constraint,
    ConstraintEngine,
    ParameterRef,
    RelationOperator,
)
from kernel_autotuner.tuning.errors import InvalidConstraintError, UnknownParameterError


class TestConstraintParsing:
    """Token chains should become left-folded expression trees."""

    def test_simple_multiple_of(self) -> None:
        """A single relation with two names parses into references."""
        constraint = Constraint.parse("A multiple-of B")

        assert constraint.relation is RelationOperator.MULTIPLE_OF
        assert constraint.left == ParameterRef("A")
        assert constraint.right == ParameterRef("B")
        assert constraint.parameter_names == frozenset({"A", "B"})

    def test_chain_folds_left_to_right(self) -> None:
        """``B multiplied-by C divided-by D`` means ``(B*C)/D``."""
        constraint = Constraint.from_tokens(
            "A",
            "multiple-of",
            "B",
            "multiplied-by",
            "C",
            "divided-by",
            "D",
        )

        assert constraint.right == BinaryExpression(
            operator=ArithmeticOperator.DIVIDED_BY,
            left=BinaryExpression(
                operator=ArithmeticOperator.MULTIPLIED_BY,
                left=ParameterRef("B"),
                right=ParameterRef("C"),
            ),
            right=ParameterRef("D"),
        )

    def test_integer_literals_and_enum_tokens(self) -> None:
        """Operands can be integers and operators can be enum members."""
        constraint = Constraint.from_tokens("A", RelationOperator.EQUALS, 4)

        assert constraint.right == Constant(4)
        assert constraint.evaluate({"A": 4}) is True
        assert constraint.evaluate({"A": 3}) is False

    def test_underscore_spelling_is_accepted(self) -> None:
        """Operator tokens may use underscores and upper case."""
        constraint = Constraint.parse("A MULTIPLE_OF B multiplied_by 2")

        assert constraint.relation is RelationOperator.MULTIPLE_OF
        assert constraint.evaluate({"A": 8, "B": 2}) is True

    def test_describe_round_trips_token_form(self) -> None:
        """Rendering keeps the original token order."""
        text = "KWG multiple-of MDIMC multiplied-by NDIMC divided-by MDIMA"

        assert Constraint.parse(text).describe() == text

    @pytest.mark.parametrize(
        "text",
        [
            "A multiplied-by B",
            "A equals B multiple-of C",
            "A multiple-of",
            "A B C",
            "multiple-of A B",
        ],
    )
    def test_malformed_expressions_are_rejected(self, text: str) -> None:
        """Zero or two relations, or misplaced operators, are errors."""
        with pytest.raises(InvalidConstraintError):
            Constraint.parse(text)

    def test_empty_text_is_rejected(self) -> None:
        """Whitespace-only constraints cannot be parsed."""
        with pytest.raises(InvalidConstraintError):
            Constraint.parse("   ")


class TestConstraintEvaluation:
    """Exact rational arithmetic drives the relations."""

    def test_multiple_of_with_rational_divisor(self) -> None:
        """``A % ((B*C)/D) == 0`` holds for exact rational quotients."""
        constraint = Constraint.parse("A multiple-of B multiplied-by C divided-by D")

        assert constraint.evaluate({"A": 16, "B": 16, "C": 16, "D": 32}) is True
        assert constraint.evaluate({"A": 12, "B": 16, "C": 16, "D": 32}) is False

    def test_fractional_divisor_is_handled_exactly(self) -> None:
        """A non-integral divisor still yields a correct answer."""
        constraint = Constraint.parse("A multiple-of B divided-by C")

        # 3 / (3/2) == 2
        assert constraint.evaluate({"A": 3, "B": 3, "C": 2}) is True
        # 2 / (3/2) == 4/3
        assert constraint.evaluate({"A": 2, "B": 3, "C": 2}) is False

    def test_zero_divisor_makes_constraint_false(self) -> None:
        """Division by zero anywhere in the expression is unsatisfied."""
        assert Constraint.parse("A multiple-of B").evaluate({"A": 4, "B": 0}) is False
        assert Constraint.parse("A equals B divided-by C").evaluate(
            {"A": 1, "B": 2, "C": 0},
        ) is False

    def test_equals_compares_both_sides(self) -> None:
        """Arithmetic is allowed on the left side too."""
        constraint = Constraint.parse("A multiplied-by B equals C")

        assert constraint.evaluate({"A": 2, "B": 8, "C": 16}) is True
        assert constraint.evaluate({"A": 2, "B": 8, "C": 15}) is False


class TestConstraintEngine:
    """The engine validates references and evaluates conjunctively."""

    def test_declare_rejects_unknown_parameters(self) -> None:
        """Constraints may only reference declared names."""
        engine = ConstraintEngine(lambda: {"A"})

        with pytest.raises(UnknownParameterError) as exc_info:
            engine.declare("A multiple-of B")

        assert exc_info.value.names == ("B",)
        assert len(engine) == 0

    def test_empty_engine_accepts_everything(self) -> None:
        """No constraints means every assignment is valid."""
        engine = ConstraintEngine(lambda: {"A"})

        assert engine.evaluate({"A": 3}) is True

    def test_all_constraints_must_hold(self) -> None:
        """A single failing constraint rejects the assignment."""
        engine = ConstraintEngine(lambda: {"A", "B"})
        engine.declare("A multiple-of B")
        engine.declare(Constraint.parse("B equals 2"))

        assert engine.evaluate({"A": 4, "B": 2}) is True
        assert engine.evaluate({"A": 4, "B": 4}) is False
        assert [constraint.describe() for constraint in engine.constraints] == [
            "A multiple-of B",
            "B equals 2",
        ]
