"""Version constraint validation.

Every check runs even after one fails, so a result lists all of its
problems at once. Validation never stops a version from being computed;
the ValidationResult travels with the VersionResult and the caller
decides whether to fail the build.
"""

from __future__ import annotations

import logging
import re

import semver

from .config import Constraints, RuleType, Severity, ValidationRule
from .models import ValidationError, ValidationResult, ValidationWarning, VersionResult
from .versions import BumpType, format_version, try_parse_version

logger = logging.getLogger(__name__)

_WILDCARDS = {"x", "X", "*"}


def is_version_in_range(version: semver.Version, range_pattern: str) -> bool:
    """Check a version against a wildcard pattern such as "3.x.x" or "2.1.*"."""
    parts = range_pattern.strip().split(".")
    if len(parts) != 3:
        logger.warning(
            "Invalid range pattern %r, expected major.minor.patch with x wildcards",
            range_pattern,
        )
        return False
    for part, actual in zip(parts, (version.major, version.minor, version.patch)):
        if part in _WILDCARDS:
            continue
        if not part.isdigit() or int(part) != actual:
            return False
    return True


def is_version_blocked(version_string: str, blocked: list[str]) -> bool:
    wanted = version_string.lower()
    return any(b.strip().lower() == wanted for b in blocked)


class VersionConstraintValidator:
    def __init__(self, constraints: Constraints | None = None) -> None:
        self.constraints = constraints or Constraints()

    def validate(
        self,
        version: semver.Version,
        *,
        previous: semver.Version | None = None,
        bump_type: BumpType = BumpType.NONE,
        changed: bool = True,
        major_approved: bool = False,
        version_string: str | None = None,
    ) -> ValidationResult:
        """Check a version against the configured constraints.

        Args:
            version: The computed version.
            previous: Version of the base tag, if there was one.
            bump_type: The bump that produced `version`.
            changed: Whether `version` is a new version; an unchanged
                     version is not expected to exceed its own tag.
            major_approved: Approval for require_major_approval.
            version_string: Rendered form, defaults to str(version).
        """
        c = self.constraints
        result = ValidationResult()
        if not c.enabled:
            return result
        text = version_string or format_version(version)

        def fail(constraint: str, message: str, expected: str | None = None) -> None:
            result.is_valid = False
            result.errors.append(
                ValidationError(
                    constraint=constraint, message=message, expected=expected, actual=text
                )
            )

        minimum = self._bound(c.minimum_version, "minimum_version", result)
        if minimum is not None and version < minimum:
            fail(
                "minimum_version",
                f"Version {text} is below minimum allowed version {c.minimum_version}",
                c.minimum_version,
            )

        maximum = self._bound(c.maximum_version, "maximum_version", result)
        if maximum is not None and version > maximum:
            fail(
                "maximum_version",
                f"Version {text} exceeds maximum allowed version {c.maximum_version}",
                c.maximum_version,
            )

        if c.allowed_range and not is_version_in_range(version, c.allowed_range):
            fail(
                "allowed_range",
                f"Version {text} is outside allowed range {c.allowed_range}",
                c.allowed_range,
            )

        if c.blocked_versions and is_version_blocked(text, c.blocked_versions):
            fail("blocked_versions", f"Version {text} is blocked and cannot be used")

        if c.require_monotonic_increase and changed and previous is not None:
            if version <= previous:
                fail(
                    "require_monotonic_increase",
                    f"Version {text} is not greater than previous version {previous}",
                    f"> {previous}",
                )

        if c.require_major_approval and bump_type is BumpType.MAJOR and not major_approved:
            fail("require_major_approval", "Major version bump requires explicit approval")

        for name, rule in c.custom_rules.items():
            self._apply_rule(name, rule, version, text, result)

        return result

    def validate_result(
        self, result: VersionResult, *, major_approved: bool = False
    ) -> ValidationResult:
        return self.validate(
            result.version,
            previous=result.previous_version,
            bump_type=result.bump_type,
            changed=result.changed,
            major_approved=major_approved,
            version_string=result.version_string,
        )

    @staticmethod
    def _bound(
        value: str | None, name: str, result: ValidationResult
    ) -> semver.Version | None:
        if not value:
            return None
        parsed = try_parse_version(value)
        if parsed is None:
            result.warnings.append(
                ValidationWarning(rule=name, message=f"Ignoring unparseable {name} {value!r}")
            )
        return parsed

    def _apply_rule(
        self,
        name: str,
        rule: ValidationRule,
        version: semver.Version,
        text: str,
        result: ValidationResult,
    ) -> None:
        if rule.type is RuleType.PATTERN:
            pattern = rule.config.get("pattern")
            if not pattern:
                logger.warning("Pattern rule %r has no 'pattern' config", name)
                return
            try:
                ok = re.search(pattern, text) is not None
            except re.error as exc:
                result.warnings.append(
                    ValidationWarning(
                        rule=name,
                        message=f"Invalid pattern in rule {name!r}",
                        details=str(exc),
                    )
                )
                return
            expected = pattern
        elif rule.type is RuleType.RANGE:
            low = try_parse_version(rule.config.get("min"))
            high = try_parse_version(rule.config.get("max"))
            if low is None and high is None:
                logger.warning("Range rule %r has no 'min' or 'max' config", name)
                return
            ok = (low is None or version >= low) and (high is None or version <= high)
            bounds = []
            if low is not None:
                bounds.append(f">= {rule.config['min']}")
            if high is not None:
                bounds.append(f"<= {rule.config['max']}")
            expected = " and ".join(bounds)
        else:
            logger.warning("Custom rule %r needs a custom implementation, skipped", name)
            return

        if ok:
            return
        message = rule.description or f"Version {text} violates rule {name!r}"
        if rule.severity is Severity.ERROR:
            result.is_valid = False
            result.errors.append(
                ValidationError(constraint=name, message=message, expected=expected, actual=text)
            )
        elif rule.severity is Severity.WARNING:
            result.warnings.append(
                ValidationWarning(
                    rule=name, message=message, details=f"Expected {expected}, actual {text}"
                )
            )
        else:
            logger.info("Rule %r: %s", name, message)
