"""
Validation utilities for BayesPower.

This module provides validation functions for specs, front-end settings,
and simulation parameters. Every validator returns a ``_ValidationResult``
that collects all problems before ``raise_if_invalid()`` raises
``InvalidSpec``.
"""

import math
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

import numpy as np

from ..errors import InvalidSpec
from ..stats.families import ALLOWED_LINKS, FAMILIES, LINKS

__all__ = []


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self):
        """Raise ``InvalidSpec`` if the validation failed."""
        if not self.is_valid:
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise InvalidSpec(error_msg)

    def merge(self, other: "_ValidationResult") -> "_ValidationResult":
        errors = self.errors + other.errors
        return _ValidationResult(len(errors) == 0, errors, self.warnings + other.warnings)


class _Validator:
    """Static helpers for type and range checks used by all validators."""

    @staticmethod
    def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
        """Check if value has expected type."""
        if isinstance(value, bool) or not isinstance(value, expected_types):
            actual_type = type(value).__name__
            expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
            return f"{name} must be {expected}, got {actual_type}"
        return None

    @staticmethod
    def _check_range(
        value: Union[int, float],
        min_val: Optional[float],
        max_val: Optional[float],
        name: str,
    ) -> Optional[str]:
        """Check if value is within range."""
        if min_val is not None and value < min_val:
            return f"{name} must be >= {min_val}, got {value}"
        if max_val is not None and value > max_val:
            return f"{name} must be <= {max_val}, got {value}"
        return None


_validator = _Validator()


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (int, float),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    allow_rounding: bool = False,
) -> _ValidationResult:
    """Generic validation for numeric parameters."""
    errors: List[str] = []
    warnings: List[str] = []

    type_error = _validator._check_type(value, expected_types, name)
    if type_error:
        errors.append(type_error)
        return _ValidationResult(False, errors, warnings)

    if isinstance(value, float) and not math.isfinite(value):
        errors.append(f"{name} must be finite, got {value}")
        return _ValidationResult(False, errors, warnings)

    range_error = _validator._check_range(value, min_val, max_val, name)
    if range_error:
        errors.append(range_error)

    # Rounding warning for floats when int expected
    if allow_rounding and isinstance(value, float):
        rounded = int(round(value))
        if value != rounded:
            warnings.append(f"{name} rounded from {value} to {rounded}")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_power(power: Any) -> _ValidationResult:
    """Validate target power parameter (0-100%)."""
    return _validate_numeric_parameter(power, "Power", min_val=0, max_val=100)


def _validate_prob_mass(prob_mass: Any) -> _ValidationResult:
    """Validate credible interval probability mass (strictly between 0 and 1)."""
    result = _validate_numeric_parameter(prob_mass, "Interval probability mass")
    if result.is_valid and not 0 < prob_mass < 1:
        result.errors.append(f"Interval probability mass must be between 0 and 1 (exclusive), got {prob_mass}")
        result.is_valid = False
    return result


def _validate_replications(replications: Any) -> Tuple[int, _ValidationResult]:
    """Validate and process the number of replications."""
    result = _validate_numeric_parameter(replications, "Number of replications", min_val=1, allow_rounding=True)

    if result.is_valid:
        rounded = int(round(replications))
        if rounded < 100:
            result.warnings.append(f"Low replication count ({rounded}). Consider using at least 100 for a usable power estimate.")
        return rounded, result

    return 0, result


def _validate_seed(seed: Any) -> _ValidationResult:
    """Validate a base seed (non-negative integer or ``None``)."""
    if seed is None:
        return _ValidationResult(True, [], [])
    return _validate_numeric_parameter(seed, "seed", expected_types=(int,), min_val=0, max_val=2**32 - 1)


def _validate_sample_size(sample_size: Any) -> _ValidationResult:
    """Validate a per-group sample size (integer >= 1)."""
    return _validate_numeric_parameter(sample_size, "sample_size", expected_types=(int,), min_val=1, max_val=10_000_000)


def _validate_sample_size_range(from_size: Any, to_size: Any, by: Any) -> _ValidationResult:
    """Validate sample size range parameters."""
    errors: List[str] = []
    warnings: List[str] = []

    for param, name in [(from_size, "from_size"), (to_size, "to_size"), (by, "by")]:
        if isinstance(param, bool) or not isinstance(param, int) or param <= 0:
            errors.append(f"{name} must be a positive integer, got {param}")

    if errors:
        return _ValidationResult(False, errors, warnings)

    if from_size >= to_size:
        errors.append(f"from_size ({from_size}) must be less than to_size ({to_size})")

    if by > (to_size - from_size):
        errors.append(f"Step size 'by' ({by}) is larger than range ({to_size - from_size}). This will only test one sample size.")

    n_tests = len(range(from_size, to_size + 1, by))
    if n_tests > 50:
        warnings.append(f"Large number of sample sizes to test ({n_tests}). This may take significant time.")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_timeout(timeout: Any) -> _ValidationResult:
    """Validate a per-replication timeout in seconds (positive or ``None``)."""
    if timeout is None:
        return _ValidationResult(True, [], [])
    result = _validate_numeric_parameter(timeout, "timeout")
    if result.is_valid and timeout <= 0:
        result.errors.append(f"timeout must be positive, got {timeout}")
        result.is_valid = False
    return result


def _validate_failure_rate(rate: Any) -> _ValidationResult:
    """Validate a maximum failure share (0-1) or ``None`` for no limit."""
    if rate is None:
        return _ValidationResult(True, [], [])
    return _validate_numeric_parameter(rate, "Maximum failure rate", min_val=0, max_val=1)


def _validate_parallel_settings(enable: Any, n_cores: Optional[int]) -> Tuple[Tuple[bool, int], _ValidationResult]:
    """Validate parallel processing settings.

    Args:
        enable: ``True`` or ``False``.
        n_cores: Number of CPU cores (positive int or ``None`` for auto).

    Returns:
        ((enable, n_cores), ValidationResult)
    """
    import multiprocessing as mp

    errors = []

    if enable not in (True, False):
        errors.append(f"enable must be True or False, got {enable!r}")
        return (False, 1), _ValidationResult(False, errors, [])

    max_cores = mp.cpu_count()
    validated_n_cores = max(1, max_cores // 2)

    if n_cores is not None:
        if isinstance(n_cores, bool) or not isinstance(n_cores, int) or n_cores <= 0:
            errors.append(f"n_cores must be a positive integer, got {n_cores}")
        else:
            validated_n_cores = min(n_cores, max_cores)

    return (bool(enable), validated_n_cores), _ValidationResult(len(errors) == 0, errors, [])


def _validate_prior(name: str, prior) -> List[str]:
    """Check prior family, parameter count, and scale positivity."""
    from ..core.specs import PRIOR_FAMILIES

    errors = []
    if prior.family not in PRIOR_FAMILIES:
        return [f"Prior for '{name}': unknown family '{prior.family}'. Valid: {', '.join(PRIOR_FAMILIES)}"]

    expected = PRIOR_FAMILIES[prior.family]
    if len(prior.params) != expected:
        return [f"Prior for '{name}': {prior.family} takes {expected} parameter(s), got {len(prior.params)}"]

    if any(not math.isfinite(p) for p in prior.params):
        return [f"Prior for '{name}': parameters must be finite"]

    # Last parameter is a scale/rate for every proper family
    if expected and prior.params[-1] <= 0:
        errors.append(f"Prior for '{name}': scale must be positive, got {prior.params[-1]}")
    if prior.family == "student_t" and prior.params[0] <= 0:
        errors.append(f"Prior for '{name}': degrees of freedom must be positive")

    return errors


def _validate_data_gen_spec(spec) -> _ValidationResult:
    """Validate a ``DataGenSpec``: family, group sizes, and parameters."""
    errors: List[str] = []
    warnings: List[str] = []

    if spec.family not in FAMILIES:
        errors.append(f"Unknown family '{spec.family}'. Valid: {', '.join(FAMILIES)}")
        return _ValidationResult(False, errors, warnings)

    if not spec.groups:
        errors.append("At least one group is required")
        return _ValidationResult(False, errors, warnings)

    if spec.aggregated and spec.family != "binomial":
        errors.append("Aggregated encoding is only available for the binomial family")

    seen = set()
    for group in spec.groups:
        label = f"Group '{group.name}'"
        if group.name in seen:
            errors.append(f"{label} is defined more than once")
        seen.add(group.name)

        if isinstance(group.size, bool) or not isinstance(group.size, (int, np.integer)):
            errors.append(f"{label}: size must be an integer, got {type(group.size).__name__}")
            continue
        if group.size < 0:
            errors.append(f"{label}: size must be non-negative, got {group.size}")

        if spec.family == "gaussian":
            if group.mean is None or group.sd is None:
                errors.append(f"{label}: gaussian groups need mean and sd")
            elif not (math.isfinite(group.mean) and math.isfinite(group.sd)):
                errors.append(f"{label}: mean and sd must be finite")
            elif group.sd <= 0:
                errors.append(f"{label}: sd must be positive, got {group.sd}")
        elif spec.family == "poisson":
            if group.rate is None:
                errors.append(f"{label}: poisson groups need a rate")
            elif not math.isfinite(group.rate) or group.rate < 0:
                errors.append(f"{label}: rate must be non-negative, got {group.rate}")
        elif spec.family == "binomial":
            if group.probability is None:
                errors.append(f"{label}: binomial groups need a probability")
            elif not 0 <= group.probability <= 1:
                errors.append(f"{label}: probability must be between 0 and 1, got {group.probability}")

    if not errors and spec.total_size == 0:
        errors.append("Total sample size is zero")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_model_spec(spec) -> _ValidationResult:
    """Validate a ``ModelSpec``: family/link pairing, formula, and priors.

    Every coefficient referenced by the formula must resolve to a prior:
    either an explicit entry or the default prior. With
    ``strict_priors=True`` the default does not count.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if spec.family not in FAMILIES:
        errors.append(f"Unknown family '{spec.family}'. Valid: {', '.join(FAMILIES)}")
        return _ValidationResult(False, errors, warnings)

    if spec.link not in LINKS:
        errors.append(f"Unknown link '{spec.link}'. Valid: {', '.join(LINKS)}")
    elif spec.link not in ALLOWED_LINKS[spec.family]:
        errors.append(f"Link '{spec.link}' is not supported for family '{spec.family}'. Valid: {', '.join(ALLOWED_LINKS[spec.family])}")

    try:
        parsed = spec.parsed_formula
    except ValueError as e:
        errors.append(str(e))
        return _ValidationResult(False, errors, warnings)

    if parsed.trials is not None and spec.family != "binomial":
        errors.append("trials() in the formula requires the binomial family")

    coefficients = parsed.coefficients
    allowed = set(coefficients) | set(spec.auxiliary)
    explicit = spec.prior_dict

    for name in explicit:
        if name not in allowed:
            errors.append(f"Prior given for '{name}', which is not a model parameter. Parameters: {', '.join(sorted(allowed))}")

    for name, prior in list(explicit.items()) + [("default", spec.default_prior)]:
        errors.extend(_validate_prior(name, prior))

    if spec.strict_priors:
        missing = [c for c in list(coefficients) + list(spec.auxiliary) if c not in explicit]
        if missing:
            errors.append(f"Missing prior for: {', '.join(missing)}")

    return _ValidationResult(len(errors) == 0, errors, warnings)


def _validate_model_matches_data(model, data) -> _ValidationResult:
    """Check that the formula only reads columns the generator produces."""
    errors: List[str] = []
    parsed = model.parsed_formula

    available = {"y", "group", *data.indicator_names}
    if data.aggregated:
        available.add("n_trials")

    if parsed.response != "y":
        errors.append(f"Response must be 'y' (the generated outcome), got '{parsed.response}'")

    for column in parsed.columns[1:]:
        if column not in available:
            errors.append(f"Formula uses '{column}', which the data generator does not produce. Available: {', '.join(sorted(available))}")

    if data.aggregated and parsed.trials is None:
        errors.append("Aggregated binomial data needs a 'y | trials(n_trials) ~ ...' formula")
    if not data.aggregated and parsed.trials is not None:
        errors.append("trials() in the formula requires aggregated binomial data")

    if model.family != data.family:
        errors.append(f"Model family '{model.family}' differs from data family '{data.family}'")

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_simulation_spec(spec) -> _ValidationResult:
    """Validate a complete ``SimulationSpec`` before any replication runs."""
    from ..core.criteria import _CRITERIA

    result = _ValidationResult(True, [], [])

    _, reps = _validate_replications(spec.replications)
    if reps.is_valid and not isinstance(spec.replications, int):
        reps.errors.append(f"Number of replications must be an integer, got {spec.replications}")
        reps.is_valid = False
    result = result.merge(reps)
    result = result.merge(_validate_prob_mass(spec.prob_mass))
    result = result.merge(_validate_data_gen_spec(spec.data))
    result = result.merge(_validate_model_spec(spec.model))

    if result.is_valid:
        result = result.merge(_validate_model_matches_data(spec.model, spec.data))

    if result.is_valid and spec.target not in spec.model.coefficients:
        result = result.merge(
            _ValidationResult(
                False,
                [f"Target '{spec.target}' is not a model coefficient. Available: {', '.join(spec.model.coefficients)}"],
                [],
            )
        )

    if not isinstance(spec.criterion, _CRITERIA):
        result = result.merge(_ValidationResult(False, [f"Unsupported criterion: {spec.criterion!r}"], []))

    if spec.width_threshold is not None:
        threshold = _validate_numeric_parameter(spec.width_threshold, "width_threshold", min_val=0)
        result = result.merge(threshold)

    policy = spec.seed_policy
    for value, name in [(policy.offset, "seed offset"), (policy.stride, "seed stride")]:
        if isinstance(value, bool) or not isinstance(value, int):
            result = result.merge(_ValidationResult(False, [f"{name} must be an integer, got {value!r}"], []))

    if result.is_valid and min(policy.seed_for(1), policy.seed_for(spec.replications)) < 0:
        result = result.merge(_ValidationResult(False, ["Seed policy produces negative seeds"], []))

    return result
