"""Spent Time - personal time allocation tracking across life spheres."""

__version__ = "0.1.0"
