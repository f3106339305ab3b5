"""Fiscal year rule tables and their loaders."""
