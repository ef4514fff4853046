"""Float types carrying the unit of speedtest measurements."""

from typing import ClassVar

# bytes per second in one megabit per second
BYTES_PER_MEGABIT = 125_000


class _UnitFloat(float):
    """Float that appends its unit when formatted.

    The standard Python format spec applies to the number, ".2f" when empty.
    Arithmetic returns plain floats.
    """

    __slots__ = ()

    _unit: ClassVar[str] = ""

    def __format__(self, format_spec: str) -> str:
        """Format the number followed by the unit.

        Args:
            format_spec: Format specification of the number.

        Returns:
            The formatted number and unit, e.g. "750.00 Mbps".
        """
        return f"{super().__format__(format_spec or '.2f')} {self._unit}"


class DataRateMbps(_UnitFloat):
    """Data rate in megabits per second.

    Speedtest reports bandwidth in bytes per second, use
    `from_bytes_per_second()` to convert.
    """

    __slots__ = ()

    _unit = "Mbps"

    @classmethod
    def from_bytes_per_second(cls, value: int) -> "DataRateMbps":
        """Convert a rate in bytes per second, e.g. 93750000 is 750 Mbps."""
        return cls(value / BYTES_PER_MEGABIT)


class Percentage(_UnitFloat):
    """Non-negative percentage, e.g. packet loss of 1.3% is `Percentage(1.3)`."""

    __slots__ = ()

    _unit = "%"

    def __new__(cls, value: float) -> "Percentage":
        """Create a percentage.

        Raises:
            ValueError: If the value is negative
        """
        if value < 0:
            raise ValueError(f"Percentage cannot be negative: {value}")
        return super().__new__(cls, value)
