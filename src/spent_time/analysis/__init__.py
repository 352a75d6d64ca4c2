"""Aggregation queries and reporting over sphere time data."""
