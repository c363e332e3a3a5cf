"""Utility helpers for PurePy."""
