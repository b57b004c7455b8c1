"""Departmental resource checkout portal."""
