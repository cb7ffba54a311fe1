"""Test pure rules: usage limits, trigger conditions, content length."""
import pytest
from patterns.rules_engine import (
    check_condition,
    check_content_length,
    check_trigger_conditions,
    check_usage_limit,
    evaluate_rules,
)


def test_usage_limit_unlimited():
    result = check_usage_limit("contacts", -1, 10_000)
    assert result.passed
    assert result.details == {"allowed": True, "limit": -1, "used": 10_000, "remaining": -1}


def test_usage_limit_remaining():
    result = check_usage_limit("contacts", 50, 49)
    assert result.passed
    assert result.details["remaining"] == 1


def test_usage_limit_reached():
    result = check_usage_limit("contacts", 50, 50)
    assert not result.passed
    assert result.details["remaining"] == 0
    assert "50 contacts" in result.message


def test_usage_limit_fractional_storage():
    result = check_usage_limit("storage", 100, 99.5)
    assert result.passed
    assert result.details["remaining"] == 0.5


def test_condition_nested_field():
    ctx = {"deal": {"stage": "Won"}}
    assert check_condition({"field": "deal.stage", "op": "eq", "value": "Won"}, ctx).passed
    assert not check_condition({"field": "deal.missing", "op": "eq", "value": "Won"}, ctx).passed


def test_condition_contains_is_case_insensitive_for_strings():
    ctx = {"email": "Jane@Example.com", "tags": ["vip", "lead"]}
    assert check_condition({"field": "email", "op": "contains", "value": "example"}, ctx).passed
    assert check_condition({"field": "tags", "op": "contains", "value": "vip"}, ctx).passed
    assert not check_condition({"field": "phone", "op": "contains", "value": "1"}, ctx).passed


def test_condition_in_and_exists():
    ctx = {"status": "LEAD", "phone": ""}
    assert check_condition({"field": "status", "op": "in", "value": ["LEAD", "CUSTOMER"]}, ctx).passed
    assert not check_condition({"field": "phone", "op": "exists"}, ctx).passed
    assert check_condition({"field": "phone", "op": "exists", "value": False}, ctx).passed


def test_condition_unknown_operator_raises():
    with pytest.raises(ValueError):
        check_condition({"field": "status", "op": "regex", "value": ".*"}, {"status": "LEAD"})


def test_trigger_conditions_empty_passes():
    assert check_trigger_conditions(None, {}).all_passed
    assert check_trigger_conditions({"conditions": []}, {}).all_passed


def test_trigger_conditions_all_must_pass():
    config = {"conditions": [
        {"field": "status", "op": "eq", "value": "LEAD"},
        {"field": "source", "op": "eq", "value": "Website"},
    ]}
    result = check_trigger_conditions(config, {"status": "LEAD", "source": "Referral"})
    assert not result.all_passed
    assert len(result.failed) == 1


def test_content_length_limits():
    limits = {"TWITTER": 280}
    assert check_content_length("TWITTER", "x" * 280, limits).passed
    failed = check_content_length("TWITTER", "x" * 281, limits)
    assert not failed.passed
    assert "280" in failed.message
    assert check_content_length("MASTODON", "x" * 1000, limits).passed


def test_evaluate_rules_aggregates():
    result = evaluate_rules(
        check_usage_limit("deals", 10, 1),
        check_usage_limit("deals", 10, 10),
    )
    assert not result.all_passed
    assert [r.passed for r in result.results] == [True, False]
