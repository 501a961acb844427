"""Utility helpers for storysearch."""
