"""Capacity, cost and income planning engine."""
