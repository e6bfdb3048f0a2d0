"""Utility functions for recat."""

from recat.utils.date_parser import parse_date, parse_date_range
from recat.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_date_range", "parse_amount"]
