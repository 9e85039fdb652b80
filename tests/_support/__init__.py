"""Shared test doubles for the stratus test suite."""
