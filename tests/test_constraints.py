"""Tests for monover.constraints."""

from __future__ import annotations

import pytest

from monover.config import Constraints, ValidationRule
from monover.constraints import (
    VersionConstraintValidator,
    is_version_blocked,
    is_version_in_range,
)
from monover.versions import BumpType, parse_version


def _validate(constraints: Constraints, version: str, **kwargs):
    return VersionConstraintValidator(constraints).validate(parse_version(version), **kwargs)


class TestRange:
    @pytest.mark.parametrize(
        ("version", "pattern", "expected"),
        [
            ("3.1.4", "3.x.x", True),
            ("3.1.4", "3.1.*", True),
            ("3.1.4", "3.2.x", False),
            ("4.0.0", "3.x.x", False),
            ("3.1.4", "3.x", False),
            ("3.1.4", "X.X.X", True),
        ],
    )
    def test_is_version_in_range(self, version: str, pattern: str, expected: bool) -> None:
        assert is_version_in_range(parse_version(version), pattern) is expected

    def test_is_version_blocked(self) -> None:
        assert is_version_blocked("1.0.0-RC.1", ["1.0.0-rc.1"])
        assert not is_version_blocked("1.0.1", ["1.0.0"])


class TestValidate:
    def test_no_constraints_pass(self) -> None:
        result = _validate(Constraints(), "1.0.0")
        assert result.is_valid
        assert result.summary == "All validation checks passed"

    def test_below_minimum(self) -> None:
        result = _validate(Constraints(minimum_version="2.0.0"), "1.5.0")
        assert not result.is_valid
        assert result.errors[0].constraint == "minimum_version"
        assert result.errors[0].expected == "2.0.0"
        assert result.errors[0].actual == "1.5.0"

    def test_above_maximum(self) -> None:
        result = _validate(Constraints(maximum_version="1.9.9"), "2.0.0")
        assert [e.constraint for e in result.errors] == ["maximum_version"]

    def test_outside_allowed_range(self) -> None:
        result = _validate(Constraints(allowed_range="1.x.x"), "2.0.0")
        assert [e.constraint for e in result.errors] == ["allowed_range"]

    def test_blocked(self) -> None:
        result = _validate(Constraints(blocked_versions=["1.0.1"]), "1.0.1")
        assert [e.constraint for e in result.errors] == ["blocked_versions"]

    def test_monotonic(self) -> None:
        result = _validate(Constraints(), "1.0.0", previous=parse_version("1.0.0"))
        assert [e.constraint for e in result.errors] == ["require_monotonic_increase"]

    def test_monotonic_skipped_for_unchanged(self) -> None:
        result = _validate(
            Constraints(), "1.0.0", previous=parse_version("1.0.0"), changed=False
        )
        assert result.is_valid

    def test_major_requires_approval(self) -> None:
        constraints = Constraints(require_major_approval=True)
        assert not _validate(constraints, "2.0.0", bump_type=BumpType.MAJOR).is_valid
        assert _validate(
            constraints, "2.0.0", bump_type=BumpType.MAJOR, major_approved=True
        ).is_valid

    def test_collects_every_error(self) -> None:
        constraints = Constraints(
            minimum_version="5.0.0", allowed_range="5.x.x", blocked_versions=["1.0.0"]
        )
        result = _validate(constraints, "1.0.0")
        assert [e.constraint for e in result.errors] == [
            "minimum_version",
            "allowed_range",
            "blocked_versions",
        ]
        assert result.summary == "Validation failed with 3 error(s)"

    def test_disabled(self) -> None:
        result = _validate(Constraints(enabled=False, minimum_version="9.0.0"), "1.0.0")
        assert result.is_valid

    def test_unparseable_bound_warns(self) -> None:
        result = _validate(Constraints(minimum_version="soon"), "1.0.0")
        assert result.is_valid
        assert result.warnings[0].rule == "minimum_version"


class TestCustomRules:
    def test_pattern_rule_error(self) -> None:
        constraints = Constraints(
            custom_rules={
                "no-prerelease": ValidationRule(
                    type="pattern", config={"pattern": r"^\d+\.\d+\.\d+$"}
                )
            }
        )
        assert _validate(constraints, "1.0.0").is_valid
        result = _validate(constraints, "1.0.0-rc.1")
        assert result.errors[0].constraint == "no-prerelease"

    def test_range_rule_warning(self) -> None:
        constraints = Constraints(
            custom_rules={
                "v1-line": ValidationRule(
                    type="range",
                    severity="warning",
                    config={"min": "1.0.0", "max": "1.99.99"},
                    description="Stay on the 1.x line",
                )
            }
        )
        result = _validate(constraints, "2.0.0")
        assert result.is_valid
        assert result.warnings[0].message == "Stay on the 1.x line"
        assert result.summary == "All validation checks passed and 1 warning(s)"

    def test_invalid_regex_warns(self) -> None:
        constraints = Constraints(
            custom_rules={"bad": ValidationRule(config={"pattern": "("})}
        )
        result = _validate(constraints, "1.0.0")
        assert result.is_valid
        assert result.warnings[0].rule == "bad"

    def test_custom_type_skipped(self) -> None:
        constraints = Constraints(custom_rules={"x": ValidationRule(type="custom")})
        assert _validate(constraints, "1.0.0").is_valid
