"""Iterative research agent with gated answer evaluation."""

__version__ = "0.1.0"
