"""Simulated-heap allocators with a trace grader, and a tiny job-control shell."""

__version__ = "0.1.0"