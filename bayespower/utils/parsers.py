"""
Parsing utilities for BayesPower.

This module provides parsing functions for model formulas, prior
assignments, group definitions, and criterion strings.
"""

import re
from dataclasses import dataclass
from itertools import combinations
from typing import Any, Dict, List, Optional, Tuple

__all__ = []

# Unicode-aware identifier pattern: letter or underscore, then word characters
_IDENT = r"[^\W\d]\w*"

_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"

INTERCEPT = "Intercept"


@dataclass(frozen=True)
class ParsedFormula:
    """Components of a brms-style regression formula.

    Attributes:
        response: Name of the outcome column.
        trials: Column holding the number of trials (aggregated binomial
            ``y | trials(n) ~ ...``), or ``None``.
        intercept: Whether the model has an intercept coefficient.
        terms: Predictor terms in formula order. Each term is a tuple of
            column names; interactions have more than one.
    """

    response: str
    trials: Optional[str]
    intercept: bool
    terms: Tuple[Tuple[str, ...], ...]

    @property
    def coefficients(self) -> List[str]:
        """Coefficient names, ``Intercept`` first."""
        names = [INTERCEPT] if self.intercept else []
        names.extend(":".join(term) for term in self.terms)
        return names

    @property
    def columns(self) -> List[str]:
        """Data columns the formula reads, in first-use order."""
        cols = [self.response]
        if self.trials is not None:
            cols.append(self.trials)
        for term in self.terms:
            for name in term:
                if name not in cols:
                    cols.append(name)
        return cols


class _AssignmentParser:
    """Parses comma-separated ``name=value`` assignment strings.

    Supports two parse types, ``"prior"`` and ``"group"``, each with a
    specialised value handler. Group assignments use the syntax
    ``name=(size, param1, param2, ...)``.

    A module-level singleton ``_parser`` is used throughout the codebase.
    """

    def __init__(self):
        self.handlers = {
            "prior": self._parse_prior_value,
            "group": self._parse_group_value,
        }

    def _parse(self, input_string: str, parse_type: str, available_items: Optional[List[str]] = None) -> Tuple[Dict, List[str]]:
        """Parse a comma-separated assignment string.

        Args:
            input_string: Raw user input (e.g. ``"Intercept=normal(0, 10)"``).
            parse_type: ``"prior"`` or ``"group"``.
            available_items: Valid names for the left-hand side, or ``None``
                to accept any identifier.

        Returns:
            Tuple of ``(parsed_dict, error_list)``; the dict preserves the
            input order.
        """
        if parse_type not in self.handlers:
            return {}, [f"Unknown parse type: {parse_type}"]

        assignments = self._split_assignments(input_string)
        parsed_items: Dict[str, Any] = {}
        errors = []

        for assignment in assignments:
            try:
                name, value = self._parse_assignment(assignment)

                if available_items is not None and name not in available_items:
                    errors.append(f"'{name}' not found. Available: {', '.join(available_items)}")
                    continue
                if not re.fullmatch(rf"{_IDENT}(?::{_IDENT})*", name):
                    errors.append(f"Invalid name '{name}'")
                    continue
                if name in parsed_items:
                    errors.append(f"'{name}' assigned more than once")
                    continue

                parsed_value, error = self.handlers[parse_type](value)
                if error:
                    errors.append(f"{name}: {error}")
                    continue

                parsed_items[name] = parsed_value

            except ValueError as e:
                errors.append(str(e))

        return parsed_items, errors

    def _split_assignments(self, input_string: str) -> List[str]:
        """Split assignments respecting parentheses."""
        assignments = []
        current: List[str] = []
        paren_count = 0

        for char in input_string:
            if char == "," and paren_count == 0:
                if current:
                    assignments.append("".join(current).strip())
                    current = []
            else:
                if char == "(":
                    paren_count += 1
                elif char == ")":
                    paren_count -= 1
                current.append(char)

        if current:
            assignments.append("".join(current).strip())

        return [a for a in assignments if a]

    def _parse_assignment(self, assignment: str) -> Tuple[str, str]:
        """Parse single assignment into name and value parts."""
        if "=" not in assignment:
            raise ValueError(f"Invalid format: '{assignment}'. Expected 'name=value'")
        name, value = assignment.split("=", 1)
        return name.strip(), value.strip()

    def _parse_prior_value(self, value: str) -> Tuple[Tuple[str, Tuple[float, ...]], Optional[str]]:
        """Parse ``family(arg, ...)`` or ``flat`` into ``(family, params)``."""
        return _parse_call(value)

    def _parse_group_value(self, value: str) -> Tuple[Tuple[float, ...], Optional[str]]:
        """Parse ``(size, p1, p2, ...)`` into a tuple of numbers."""
        if not (value.startswith("(") and value.endswith(")")):
            return (), "Expected '(size, parameter, ...)'"
        parts = [p.strip() for p in value[1:-1].split(",") if p.strip()]
        if len(parts) < 2:
            return (), "Expected at least a size and one parameter"
        try:
            numbers = tuple(float(p) for p in parts)
        except ValueError:
            return (), f"Invalid number in '{value}'"
        if numbers[0] != int(numbers[0]):
            return (), f"Group size must be an integer, got {parts[0]}"
        return numbers, None


_parser = _AssignmentParser()


def _parse_call(value: str) -> Tuple[Tuple[str, Tuple[float, ...]], Optional[str]]:
    """Parse a distribution call such as ``normal(0, 2.5)``.

    A bare identifier (``flat``) parses to an empty parameter tuple.
    """
    value = value.strip()
    bare = re.fullmatch(rf"({_IDENT})", value)
    if bare:
        return (bare.group(1).lower(), ()), None

    match = re.fullmatch(rf"({_IDENT})\s*\((.*)\)", value)
    if not match:
        return ("", ()), f"Invalid distribution '{value}'. Expected e.g. 'normal(0, 1)'"

    family = match.group(1).lower()
    args = [a.strip() for a in match.group(2).split(",") if a.strip()]
    params = []
    for arg in args:
        if not re.fullmatch(_NUMBER, arg):
            return ("", ()), f"Invalid argument '{arg}' in '{value}'"
        params.append(float(arg))
    return (family, tuple(params)), None


def _parse_criterion(value: str) -> Tuple[str, Optional[float]]:
    """Parse a criterion string like ``excludes_null(0)`` or ``width_below(0.7)``.

    Returns:
        ``(name, argument)``; *argument* is ``None`` when omitted.

    Raises:
        ValueError: If the string is not a single-argument call.
    """
    compact = value.replace(" ", "")
    head, paren, rest = compact.partition("(")
    (name, params), error = _parse_call(head.replace("-", "_") + paren + rest)
    if error:
        raise ValueError(error)
    if len(params) > 1:
        raise ValueError(f"Criterion '{value}' takes at most one argument")
    return name, (params[0] if params else None)


def _parse_formula(formula: str) -> ParsedFormula:
    """Parse a brms-style formula into its components.

    Supported syntax:
    - ``y ~ x``: intercept plus slope (``=`` also accepted as separator)
    - ``y ~ 0 + Intercept + x`` or ``y ~ x - 1``: explicit/removed intercept
    - ``y ~ a + b + a:b`` and ``y ~ a*b``: interactions
    - ``y | trials(n) ~ 1``: aggregated binomial response

    Args:
        formula: Formula string.

    Returns:
        ``ParsedFormula``.

    Raises:
        ValueError: If the formula has no response or contains
            unsupported syntax.
    """
    compact = formula.replace(" ", "")

    if "~" in compact:
        left, right = compact.split("~", 1)
    elif "=" in compact:
        left, right = compact.split("=", 1)
    else:
        raise ValueError(f"Formula '{formula}' needs a response, e.g. 'y ~ treatment'")

    trials = None
    trials_match = re.fullmatch(rf"({_IDENT})\|trials\(({_IDENT})\)", left)
    if trials_match:
        response, trials = trials_match.group(1), trials_match.group(2)
    elif re.fullmatch(_IDENT, left):
        response = left
    else:
        raise ValueError(f"Invalid response '{left}' in formula '{formula}'")

    if not right:
        raise ValueError(f"Formula '{formula}' has no right-hand side")

    intercept = True
    terms: List[Tuple[str, ...]] = []
    seen = set()

    def _add(term: Tuple[str, ...]):
        if term not in seen:
            seen.add(term)
            terms.append(term)

    # Leading sign belongs to the first term
    tokens = re.findall(r"[+\-]?[^+\-]+", right)
    for token in tokens:
        sign = "-" if token.startswith("-") else "+"
        term = token.lstrip("+-")
        if term in ("0", "1"):
            if term == "0" or sign == "-":
                intercept = False
            continue
        if sign == "-":
            raise ValueError(f"Removing term '{term}' is not supported in formula '{formula}'")
        if term == INTERCEPT:
            # brms '0 + Intercept' keeps the intercept as an ordinary coefficient
            intercept = True
            continue

        variables = re.findall(_IDENT, term)
        if not variables or re.sub(rf"{_IDENT}|[:*]", "", term):
            raise ValueError(f"Invalid term '{term}' in formula '{formula}'")

        if "*" in term:
            for var in variables:
                _add((var,))
            for r in range(2, len(variables) + 1):
                for combo in combinations(variables, r):
                    _add(tuple(combo))
        elif ":" in term:
            _add(tuple(variables))
        else:
            _add((variables[0],))

    if not intercept and not terms:
        raise ValueError(f"Formula '{formula}' has no coefficients")

    return ParsedFormula(response=response, trials=trials, intercept=intercept, terms=tuple(terms))
