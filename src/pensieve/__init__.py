"""Pensieve: pathway validation and dependency-conflict engine."""

__version__ = "0.1.0"
