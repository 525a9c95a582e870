"""Constraint expressions and their evaluation against value assignments.

A constraint relates two arithmetic chains with a single relation::

    KWG multiple-of MDIMC multiplied-by NDIMC divided-by MDIMA

Each side is folded left to right, so the example reads
``KWG % ((MDIMC * NDIMC) / MDIMA) == 0``. Operands are parameter names or
integer literals. Division is exact (``fractions.Fraction``); a division by
zero anywhere in a chain makes the constraint false.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import TypeAlias

from .errors import InvalidConstraintError, UnknownParameterError


class RelationOperator(str, Enum):
    """Boolean relation between the two sides of a constraint."""

    EQUALS = "equals"
    MULTIPLE_OF = "multiple-of"


class ArithmeticOperator(str, Enum):
    """Arithmetic combination inside one side of a constraint."""

    MULTIPLIED_BY = "multiplied-by"
    DIVIDED_BY = "divided-by"


@dataclass(frozen=True, slots=True)
class ParameterRef:
    """Leaf referring to a parameter's value in the assignment."""

    name: str


@dataclass(frozen=True, slots=True)
class Constant:
    """Integer literal leaf."""

    value: int


@dataclass(frozen=True, slots=True)
class BinaryExpression:
    """Arithmetic node combining two sub-expressions."""

    operator: ArithmeticOperator
    left: Expression
    right: Expression


Expression: TypeAlias = ParameterRef | Constant | BinaryExpression
Token: TypeAlias = str | int | RelationOperator | ArithmeticOperator


def evaluate_expression(
    expression: Expression,
    assignment: Mapping[str, int],
) -> Fraction | None:
    """Evaluate an arithmetic expression, returning ``None`` on division by zero."""
    match expression:
        case Constant(value=value):
            return Fraction(value)
        case ParameterRef(name=name):
            return Fraction(assignment[name])
        case BinaryExpression(operator=operator, left=left, right=right):
            lhs = evaluate_expression(left, assignment)
            rhs = evaluate_expression(right, assignment)
            if lhs is None or rhs is None:
                return None
            if operator is ArithmeticOperator.MULTIPLIED_BY:
                return lhs * rhs
            if rhs == 0:
                return None
            return lhs / rhs
    msg = f"Unsupported expression node: {expression!r}"
    raise TypeError(msg)


def expression_names(expression: Expression) -> frozenset[str]:
    """Return every parameter name referenced by the expression."""
    match expression:
        case ParameterRef(name=name):
            return frozenset({name})
        case BinaryExpression(left=left, right=right):
            return expression_names(left) | expression_names(right)
        case _:
            return frozenset()


def render_expression(expression: Expression) -> str:
    """Render an expression back into its token form."""
    match expression:
        case ParameterRef(name=name):
            return name
        case Constant(value=value):
            return str(value)
        case BinaryExpression(operator=operator, left=left, right=right):
            return (
                f"{render_expression(left)} {operator.value} "
                f"{render_expression(right)}"
            )
    msg = f"Unsupported expression node: {expression!r}"
    raise TypeError(msg)


@dataclass(frozen=True, slots=True)
class Constraint:
    """Predicate ``left <relation> right`` over parameter values."""

    relation: RelationOperator
    left: Expression
    right: Expression

    @property
    def parameter_names(self) -> frozenset[str]:
        """Names of every parameter the constraint reads."""
        return expression_names(self.left) | expression_names(self.right)

    def evaluate(self, assignment: Mapping[str, int]) -> bool:
        """Return whether the assignment satisfies the constraint."""
        lhs = evaluate_expression(self.left, assignment)
        rhs = evaluate_expression(self.right, assignment)
        if lhs is None or rhs is None:
            return False
        if self.relation is RelationOperator.EQUALS:
            return lhs == rhs
        if rhs == 0:
            return False
        return (lhs / rhs).denominator == 1

    def describe(self) -> str:
        """Human readable token form of the constraint."""
        return (
            f"{render_expression(self.left)} {self.relation.value} "
            f"{render_expression(self.right)}"
        )

    @classmethod
    def from_tokens(cls, *tokens: Token) -> Constraint:
        """Build a constraint from an operand/operator chain.

        Example: ``Constraint.from_tokens("MWG", "multiple-of", "MDIMC",
        "multiplied-by", "VWM")``.
        """
        if len(tokens) < 3 or len(tokens) % 2 == 0:  # noqa: PLR2004
            msg = (
                "Constraint must alternate operands and operators and contain "
                f"at least one relation: {tokens!r}"
            )
            raise InvalidConstraintError(msg)

        operands = [_parse_operand(token) for token in tokens[0::2]]
        operators = [_parse_operator(token) for token in tokens[1::2]]

        relation_positions = [
            index
            for index, operator in enumerate(operators)
            if isinstance(operator, RelationOperator)
        ]
        if len(relation_positions) != 1:
            msg = (
                "Constraint requires exactly one of 'equals' or 'multiple-of', "
                f"found {len(relation_positions)}"
            )
            raise InvalidConstraintError(msg)

        split = relation_positions[0]
        relation = operators[split]
        if not isinstance(relation, RelationOperator):  # pragma: no cover
            msg = "Relation operator lookup failed"
            raise InvalidConstraintError(msg)

        left = _fold(operands[: split + 1], operators[:split])
        right = _fold(operands[split + 1 :], operators[split + 1 :])
        return cls(relation=relation, left=left, right=right)

    @classmethod
    def parse(cls, text: str) -> Constraint:
        """Parse a whitespace separated constraint string."""
        tokens = text.split()
        if not tokens:
            msg = "Constraint text is empty"
            raise InvalidConstraintError(msg)
        return cls.from_tokens(*tokens)


def _parse_operand(token: Token) -> Expression:
    """Convert an operand token into a leaf node."""
    if isinstance(token, (RelationOperator, ArithmeticOperator)):
        msg = f"Expected a parameter name or integer, got operator {token.value!r}"
        raise InvalidConstraintError(msg)
    if isinstance(token, bool):
        msg = "Boolean operands are not supported"
        raise InvalidConstraintError(msg)
    if isinstance(token, int):
        return Constant(token)
    text = token.strip()
    if not text:
        msg = "Constraint operands must not be empty"
        raise InvalidConstraintError(msg)
    if text.lstrip("+-").isdigit():
        return Constant(int(text))
    if _operator_or_none(text) is not None:
        msg = f"Expected a parameter name or integer, got operator {text!r}"
        raise InvalidConstraintError(msg)
    return ParameterRef(text)


def _operator_or_none(token: str) -> RelationOperator | ArithmeticOperator | None:
    """Look up an operator by its token spelling."""
    normalized = token.strip().lower().replace("_", "-")
    for enum_type in (RelationOperator, ArithmeticOperator):
        try:
            return enum_type(normalized)
        except ValueError:
            continue
    return None


def _parse_operator(token: Token) -> RelationOperator | ArithmeticOperator:
    """Convert an operator token into its enum member."""
    if isinstance(token, (RelationOperator, ArithmeticOperator)):
        return token
    if isinstance(token, str):
        operator = _operator_or_none(token)
        if operator is not None:
            return operator
    msg = f"Unknown constraint operator: {token!r}"
    raise InvalidConstraintError(msg)


def _fold(
    operands: list[Expression],
    operators: list[RelationOperator | ArithmeticOperator],
) -> Expression:
    """Fold one side of a constraint left to right."""
    result = operands[0]
    for operator, operand in zip(operators, operands[1:], strict=True):
        if not isinstance(operator, ArithmeticOperator):  # pragma: no cover
            msg = "Relations cannot appear inside an arithmetic chain"
            raise InvalidConstraintError(msg)
        result = BinaryExpression(operator=operator, left=result, right=operand)
    return result


class ConstraintEngine:
    """Registry of constraints evaluated conjunctively."""

    def __init__(self, known_names: Callable[[], Iterable[str]]) -> None:
        """Bind the engine to a source of declared parameter names."""
        self._known_names = known_names
        self._constraints: list[Constraint] = []

    @property
    def constraints(self) -> tuple[Constraint, ...]:
        """Registered constraints in declaration order."""
        return tuple(self._constraints)

    def declare(self, constraint: Constraint | str) -> Constraint:
        """Register a constraint after checking its parameter references."""
        parsed = Constraint.parse(constraint) if isinstance(constraint, str) else constraint
        known = set(self._known_names())
        missing = tuple(sorted(parsed.parameter_names - known))
        if missing:
            raise UnknownParameterError(missing)
        self._constraints.append(parsed)
        return parsed

    def evaluate(self, assignment: Mapping[str, int]) -> bool:
        """Return True when every constraint holds, stopping at the first failure."""
        return all(constraint.evaluate(assignment) for constraint in self._constraints)

    def __len__(self) -> int:
        """Number of registered constraints."""
        return len(self._constraints)


__all__ = [
    "ArithmeticOperator",
    "BinaryExpression",
    "Constant",
    "Constraint",
    "ConstraintEngine",
    "Expression",
    "ParameterRef",
    "RelationOperator",
    "evaluate_expression",
    "expression_names",
    "render_expression",
]
