"""
Exception types for fluentgenomics.

Validation errors cover malformed tables and arguments; analysis errors
cover stores that cannot be combined and undefined enrichment ratios;
cache errors cover unreadable datasets on disk. Network errors from
``requests`` are never wrapped.
"""

from numbers import Real
from typing import Iterable, List, Optional

import pandas as pd


class FluentGenomicsError(Exception):
    """Base exception for all fluentgenomics errors."""
    pass


# ============================================================================
# Data validation errors
# ============================================================================

class ValidationError(FluentGenomicsError):
    """Input table or argument rejected before any computation."""
    pass


class SchemaError(ValidationError):
    """Interval store or grouped table does not have the expected shape."""
    pass


class MissingColumnError(ValidationError):
    """A column the operation reads is absent."""

    def __init__(self, column: str, table: str = "table", available: Optional[List[str]] = None):
        msg = f"{table} has no column '{column}'"
        if available:
            msg += f" (columns: {', '.join(map(str, available))})"
        super().__init__(msg)
        self.column = column
        self.table = table
        self.available = available


class EmptyDataError(ValidationError):
    """A table or population that must have rows has none."""

    def __init__(self, data_name: str = "data"):
        super().__init__(f"{data_name} is empty")
        self.data_name = data_name


class InvalidParameterError(ValidationError):
    """An argument is outside its allowed values."""

    def __init__(self, param: str, value, valid_range: str = ""):
        msg = f"{param}={value!r} is not allowed"
        if valid_range:
            msg += f"; expected {valid_range}"
        super().__init__(msg)
        self.param = param
        self.value = value
        self.valid_range = valid_range


class InvalidWidthError(InvalidParameterError):
    """Resize width is not a positive integer."""

    def __init__(self, value):
        super().__init__("new_width", value, "a positive integer")


class SampleSizeError(InvalidParameterError):
    """Bootstrap sample cannot be drawn without replacement from its population."""

    def __init__(self, sample_size, population: int):
        super().__init__(
            "sample_size", sample_size,
            f"an integer between 0 and the population size {population}",
        )
        self.sample_size = sample_size
        self.population = population


# ============================================================================
# Analysis errors
# ============================================================================

class AnalysisError(FluentGenomicsError):
    """Valid inputs that cannot be analysed together."""
    pass


class GenomeMismatchError(AnalysisError):
    """Two interval stores differ in genome or chromosome naming style."""

    def __init__(self, left: str, right: str, what: str = "genome"):
        super().__init__(f"Cannot combine interval stores: {what} '{left}' != '{right}'")
        self.left = left
        self.right = right
        self.what = what


class UndefinedRatioError(AnalysisError):
    """Strict enrichment ratio with a zero denominator."""

    def __init__(self, numerator, denominator):
        super().__init__(f"Enrichment ratio {numerator}/{denominator} is undefined")
        self.numerator = numerator
        self.denominator = denominator


# ============================================================================
# Cache errors
# ============================================================================

class CacheError(FluentGenomicsError):
    """Cached dataset on disk is missing its manifest or cannot be read."""
    pass


# ============================================================================
# Validation helpers
# ============================================================================

def validate_dataframe(
    df,
    name: str = "table",
    required_columns: Optional[Iterable[str]] = None,
    min_rows: int = 0,
) -> None:
    """Check that ``df`` is a DataFrame with the given columns and row count.

    Raises
    ------
    EmptyDataError
        If ``df`` is None, or has no rows while ``min_rows > 0``.
    ValidationError
        If ``df`` is not a DataFrame or has fewer than ``min_rows`` rows.
    MissingColumnError
        For the first required column that is absent.
    """
    if df is None:
        raise EmptyDataError(name)
    if not isinstance(df, pd.DataFrame):
        raise ValidationError(f"{name} must be a pandas DataFrame, not {type(df).__name__}")

    n_rows = len(df)
    if n_rows < min_rows:
        if n_rows == 0:
            raise EmptyDataError(name)
        raise ValidationError(f"{name} needs at least {min_rows} rows, found {n_rows}")

    present = set(df.columns)
    missing = [c for c in (required_columns or []) if c not in present]
    if missing:
        raise MissingColumnError(missing[0], name, available=list(df.columns))


def validate_numeric_param(value, name: str, min_val=None, max_val=None) -> None:
    """Check that ``value`` is a real number within ``[min_val, max_val]``."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidParameterError(name, value, "a number")
    if min_val is not None and value < min_val:
        raise InvalidParameterError(name, value, f">= {min_val}")
    if max_val is not None and value > max_val:
        raise InvalidParameterError(name, value, f"<= {max_val}")
