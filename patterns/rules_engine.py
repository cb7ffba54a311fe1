"""Pure-function rules engine.

Rules are stateless functions: (entity, context) -> RuleResult.
No database, no side effects, no LLM calls. Services gather the numbers,
the rules decide:

- plan usage limits
- automation trigger conditions
- social post length per platform
"""

from dataclasses import dataclass, field
from typing import Any

from patterns.domain_config import UNLIMITED


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class RuleResult:
    """Outcome of a single rule evaluation."""

    passed: bool
    rule_name: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleSetResult:
    """Aggregate outcome of multiple rules."""

    all_passed: bool
    results: list[RuleResult]
    failed: list[RuleResult] = field(default_factory=list)

    def __post_init__(self):
        self.failed = [r for r in self.results if not r.passed]
        self.all_passed = len(self.failed) == 0


# ---------------------------------------------------------------------------
# Plan usage
# ---------------------------------------------------------------------------

def check_usage_limit(resource: str, limit: int, used: float) -> RuleResult:
    """Check whether one more unit of a metered resource fits the plan.

    ``limit == -1`` is unlimited. Otherwise the resource is available while
    ``remaining = limit - used`` is positive.
    """
    if limit == UNLIMITED:
        return RuleResult(
            passed=True,
            rule_name="usage_limit",
            message=f"Unlimited {resource}",
            details={"allowed": True, "limit": UNLIMITED, "used": used, "remaining": UNLIMITED},
        )

    remaining = max(0, limit - used)
    passed = remaining > 0
    return RuleResult(
        passed=passed,
        rule_name="usage_limit",
        message=(
            f"{remaining} {resource} remaining"
            if passed
            else f"Plan limit of {limit} {resource} reached"
        ),
        details={"allowed": passed, "limit": limit, "used": used, "remaining": remaining},
    )


# ---------------------------------------------------------------------------
# Automation trigger conditions
# ---------------------------------------------------------------------------

def _lookup(context: dict, path: str) -> Any:
    """Resolve a dotted path ("deal.stage") in a nested dict."""
    current: Any = context
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _compare(op: str, actual: Any, expected: Any) -> bool:
    if op == "eq":
        return actual == expected
    if op == "neq":
        return actual != expected
    if op == "contains":
        if actual is None:
            return False
        if isinstance(actual, (list, tuple)):
            return expected in actual
        return str(expected).lower() in str(actual).lower()
    if op == "in":
        return isinstance(expected, (list, tuple)) and actual in expected
    if op == "exists":
        present = actual is not None and actual != ""
        return present if expected is None else present == bool(expected)
    raise ValueError(f"Unknown condition operator: {op}")


def check_condition(condition: dict, context: dict) -> RuleResult:
    """Evaluate one ``{"field", "op", "value"}`` condition against a context."""
    field_name = condition.get("field", "")
    op = condition.get("op", "eq")
    expected = condition.get("value")
    actual = _lookup(context, field_name)
    passed = _compare(op, actual, expected)

    return RuleResult(
        passed=passed,
        rule_name="trigger_condition",
        message=f"{field_name} {op} {expected!r}: {'match' if passed else 'no match'}",
        details={"field": field_name, "op": op, "expected": expected, "actual": actual},
    )


def check_trigger_conditions(trigger_config: dict | None, context: dict) -> RuleSetResult:
    """All conditions in ``trigger_config["conditions"]`` must pass.

    An empty or missing condition list always passes.
    """
    conditions = (trigger_config or {}).get("conditions") or []
    return evaluate_rules(*(check_condition(c, context) for c in conditions))


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

def check_content_length(platform: str, content: str, limits: dict[str, int]) -> RuleResult:
    """Check a social post against its platform's character limit."""
    limit = limits.get(platform)
    length = len(content)
    passed = limit is None or length <= limit

    return RuleResult(
        passed=passed,
        rule_name="content_length",
        message=(
            f"{length} characters"
            if passed
            else f"Content exceeds {platform} limit of {limit} characters ({length})"
        ),
        details={"platform": platform, "length": length, "limit": limit},
    )


# ---------------------------------------------------------------------------
# Rule composition
# ---------------------------------------------------------------------------

def evaluate_rules(*rules: RuleResult) -> RuleSetResult:
    """Compose multiple rule results into a single aggregate.

    Example::

        result = evaluate_rules(
            check_condition({"field": "status", "op": "eq", "value": "LEAD"}, ctx),
            check_condition({"field": "email", "op": "exists"}, ctx),
        )
        if result.all_passed:
            run_action()
    """
    return RuleSetResult(
        all_passed=all(r.passed for r in rules),
        results=list(rules),
    )
