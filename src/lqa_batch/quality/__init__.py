"""Deterministic quality grading and cross-report aggregation."""
