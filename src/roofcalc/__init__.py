"""roofcalc -- roof estimating formula engine and line-item pricing."""

__version__ = "0.4.0"
