"""Utility functions for ledgerkit."""

from ledgerkit.utils.date_parser import get_date_range, parse_date
from ledgerkit.utils.amount_parser import parse_amount

__all__ = ["parse_date", "parse_amount", "get_date_range"]
