"""Quaternion and rigid-transform helpers."""
