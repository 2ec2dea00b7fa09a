"""Calendar versioning.

Major and minor come from the date (year and month, or ISO year and ISO
week); only the patch is counted. Within one period every release bumps
the patch; a new period starts again at 0 when reset_patch_periodically
is set, otherwise the count carries on.
"""

from __future__ import annotations

import datetime as dt

import semver

from .config import CalVerConfig


class CalVerCalculator:
    def __init__(self, config: CalVerConfig | None = None) -> None:
        self.config = config or CalVerConfig()

    @property
    def is_weekly(self) -> bool:
        return ".WW." in self.config.format

    def period(self, today: dt.date) -> tuple[int, int]:
        """Return the (major, minor) pair for a date."""
        fmt = self.config.format
        if self.is_weekly:
            iso_year, iso_week, _ = today.isocalendar()
            return iso_year, iso_week
        if fmt.startswith("YYYY."):
            return today.year, today.month
        if fmt.startswith("YY."):
            return today.year % 100, today.month
        raise ValueError(f"Unsupported CalVer format: {fmt}")

    def calculate(
        self, today: dt.date, previous: semver.Version | None = None
    ) -> semver.Version:
        """Compute the next release version.

        Args:
            today: Date of the build.
            previous: Version of the last release, if any.
        """
        major, minor = self.period(today)
        if previous is None:
            patch = 0
        elif (previous.major, previous.minor) == (major, minor):
            patch = previous.patch + 1
        elif self.config.reset_patch_periodically:
            patch = 0
        else:
            patch = previous.patch + 1
        return semver.Version(major, minor, patch)

    def is_same_period(self, version: semver.Version, today: dt.date) -> bool:
        return (version.major, version.minor) == self.period(today)

    def format(self, version: semver.Version) -> str:
        """Render a version in this format, e.g. "25.01.3" for YY.0M.PATCH."""
        sep = self.config.separator
        minor = f"{version.minor:02d}" if ".0M." in self.config.format else str(version.minor)
        text = f"{version.major}{sep}{minor}{sep}{version.patch}"
        if version.prerelease:
            text += f"-{version.prerelease}"
        if version.build:
            text += f"+{version.build}"
        return text
