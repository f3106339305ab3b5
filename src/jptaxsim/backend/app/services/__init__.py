"""Calculation, validation and storage services behind the HTTP layer."""
