"""Recurring fixed-fee prize draws."""
