"""Unit tests for walltime parsing."""

from __future__ import annotations

import pytest

from testbed_orchestrator.domain.errors import InvalidOptions, InvalidWalltime
from testbed_orchestrator.domain.value_objects import Walltime, parse_walltime


@pytest.mark.unit
class TestParseWalltime:
    """Tests for parse_walltime."""

    def test_full_form(self) -> None:
        walltime = parse_walltime("01:30:15")
        assert walltime == Walltime(1, 30, 15)
        assert walltime.total_seconds == 5415

    def test_short_forms(self) -> None:
        """HH and HH:MM are accepted and normalized."""
        assert str(parse_walltime("2")) == "02:00:00"
        assert str(parse_walltime("2:5")) == "02:05:00"

    def test_hours_beyond_a_day(self) -> None:
        assert parse_walltime("36:00:00").total_seconds == 129600

    def test_seconds_input(self) -> None:
        assert str(parse_walltime(1800)) == "00:30:00"

    def test_walltime_passthrough(self) -> None:
        walltime = Walltime(0, 45)
        assert parse_walltime(walltime) is walltime

    @pytest.mark.parametrize("value", ["", "1h", "01:60:00", "01:00:75", "-1:00:00", "a:b:c"])
    def test_invalid_strings(self, value: str) -> None:
        with pytest.raises(InvalidWalltime):
            parse_walltime(value)

    def test_invalid_types(self) -> None:
        with pytest.raises(InvalidWalltime):
            parse_walltime(True)  # type: ignore[arg-type]
        with pytest.raises(InvalidWalltime):
            parse_walltime(1.5)  # type: ignore[arg-type]

    def test_is_invalid_options(self) -> None:
        """Walltime errors belong to the caller-input family."""
        with pytest.raises(InvalidOptions):
            parse_walltime("soon")


@pytest.mark.unit
class TestWalltime:
    """Tests for the Walltime value."""

    def test_str_is_zero_padded(self) -> None:
        assert str(Walltime(1, 2, 3)) == "01:02:03"

    def test_from_seconds(self) -> None:
        assert Walltime.from_seconds(3661) == Walltime(1, 1, 1)

    def test_negative_seconds(self) -> None:
        with pytest.raises(InvalidWalltime):
            Walltime.from_seconds(-1)
