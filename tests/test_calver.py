"""Tests for monover.calver."""

from __future__ import annotations

import datetime as dt

import pytest
import semver
from pydantic import ValidationError

from monover.calver import CalVerCalculator
from monover.config import CalVerConfig


def _calc(**kwargs) -> CalVerCalculator:
    return CalVerCalculator(CalVerConfig(**kwargs))


class TestCalculate:
    def test_first_release(self) -> None:
        assert str(_calc().calculate(dt.date(2025, 11, 3))) == "2025.11.0"

    def test_same_month_increments_patch(self) -> None:
        calc = _calc()
        first = calc.calculate(dt.date(2025, 11, 3))
        second = calc.calculate(dt.date(2025, 11, 20), first)
        assert str(second) == "2025.11.1"

    def test_new_month_resets_patch(self) -> None:
        previous = semver.Version(2025, 11, 1)
        assert str(_calc().calculate(dt.date(2025, 12, 1), previous)) == "2025.12.0"

    def test_new_month_without_reset_continues(self) -> None:
        calc = _calc(reset_patch_periodically=False)
        previous = semver.Version(2025, 11, 4)
        assert str(calc.calculate(dt.date(2025, 12, 1), previous)) == "2025.12.5"

    def test_short_year(self) -> None:
        calc = _calc(format="YY.0M.PATCH")
        assert calc.calculate(dt.date(2025, 1, 15)) == semver.Version(25, 1, 0)

    def test_iso_week(self) -> None:
        calc = _calc(format="YYYY.WW.PATCH")
        # 2024-12-30 belongs to ISO week 1 of 2025.
        assert calc.calculate(dt.date(2024, 12, 30)) == semver.Version(2025, 1, 0)

    def test_same_week_increments(self) -> None:
        calc = _calc(format="YYYY.WW.PATCH")
        previous = semver.Version(2025, 46, 0)
        assert str(calc.calculate(dt.date(2025, 11, 14), previous)) == "2025.46.1"


class TestPeriod:
    def test_is_same_period(self) -> None:
        calc = _calc()
        assert calc.is_same_period(semver.Version(2025, 11, 3), dt.date(2025, 11, 30))
        assert not calc.is_same_period(semver.Version(2025, 11, 3), dt.date(2025, 12, 1))


class TestFormat:
    def test_zero_padded_month(self) -> None:
        calc = _calc(format="YY.0M.PATCH")
        assert calc.format(semver.Version(25, 1, 3)) == "25.01.3"

    def test_plain_month(self) -> None:
        assert _calc().format(semver.Version(2025, 1, 3)) == "2025.1.3"

    def test_separator_and_suffixes(self) -> None:
        calc = _calc(format="YYYY.0M.PATCH", separator="-")
        version = semver.Version(2025, 3, 0, prerelease="rc.1", build="branch.main")
        assert calc.format(version) == "2025-03-0-rc.1+branch.main"


class TestConfig:
    def test_format_case_insensitive(self) -> None:
        assert CalVerConfig(format="yyyy.mm.patch").format == "YYYY.MM.PATCH"

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CalVerConfig(format="YYYY.DD")
