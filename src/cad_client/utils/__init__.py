"""Utility helpers shared across CAD Client modules."""
