"""Utility helpers for the pond cache."""
