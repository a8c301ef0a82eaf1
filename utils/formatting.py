"""Output formatting utilities for the homestead budget tools.

Provides reusable functions for:
- Formatting Rand amounts and percentages
- Flagging high-cost items
- Plain-text table output for the CLI report
"""

from typing import Optional, List, Any


def format_currency(value: Optional[float], symbol: str = "R",
                    thousands_sep: str = ",", precision: int = 0) -> str:
    """Format a cost for display.

    Args:
        value: Amount (None, NaN and non-numbers render as zero)
        symbol: Currency symbol prefix (default: "R")
        thousands_sep: Group separator (default: ",")
        precision: Decimal places; whole amounts drop decimals when 0

    Returns:
        Formatted string like "R11,700"

    Examples:
        format_currency(11700) -> "R11,700"
        format_currency(None) -> "R0"
        format_currency(1234.5, precision=2) -> "R1,234.50"
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        return f"{symbol}0"

    if precision == 0 and (isinstance(value, int) or value.is_integer()):
        text = f"{int(value):,d}"
    else:
        # Fractional amounts always show cents
        text = f"{value:,.{precision or 2}f}"
    if thousands_sep != ",":
        text = text.replace(",", thousands_sep)
    return f"{symbol}{text}"


def format_percent(value: Optional[float], precision: int = 1) -> str:
    """Format a percentage for display.

    Examples:
        format_percent(78.0) -> "78.0%"
        format_percent(None) -> "-"
    """
    if value is None:
        return "-"
    return f"{value:.{precision}f}%"


def format_number(value: Any) -> str:
    """Render a number without a trailing ``.0`` when it is whole.

    Used for export cells, where ``8500`` reads better than ``8500.0``.
    Fractions keep full precision (``0.125`` stays ``0.125``) so exported
    unit costs multiply back to their line totals.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return "" if value is None else str(value)
    if isinstance(value, int):
        return str(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def is_high_cost(amount: Optional[float], threshold: float = 10000) -> bool:
    """True when *amount* meets or exceeds the high-cost threshold."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    return amount >= threshold


class TableFormatter:
    """Formats data as aligned tabular output."""

    def __init__(self, columns: List[str], column_widths: Optional[List[int]] = None):
        self.columns = columns
        self.column_widths = column_widths or [len(col) for col in columns]
        self.rows: List[List[str]] = []

    def add_row(self, values: List[Any]) -> None:
        """Add a row to the table.

        Raises:
            ValueError: If value count doesn't match column count
        """
        if len(values) != len(self.columns):
            raise ValueError(f"Expected {len(self.columns)} values, got {len(values)}")

        str_values = []
        for i, val in enumerate(values):
            str_val = str(val) if val is not None else "-"
            str_values.append(str_val)
            if len(str_val) > self.column_widths[i]:
                self.column_widths[i] = len(str_val)

        self.rows.append(str_values)

    def _format_row(self, values: List[str], is_header: bool = False) -> str:
        cells = []
        for i, val in enumerate(values):
            width = self.column_widths[i]
            # Amount and percent columns are right-aligned; names left-aligned
            if not is_header and i > 0:
                cells.append(val.rjust(width))
            else:
                cells.append(val.ljust(width))
        return "  ".join(cells).rstrip()

    def to_string(self, show_header: bool = True, show_separator: bool = True) -> str:
        """Format table as multi-line string."""
        lines = []

        if show_header:
            lines.append(self._format_row(self.columns, is_header=True))
            if show_separator:
                lines.append("  ".join("-" * w for w in self.column_widths))

        for row in self.rows:
            lines.append(self._format_row(row))

        return "\n".join(lines)
