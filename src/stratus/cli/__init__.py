"""Stratus command line interface."""
