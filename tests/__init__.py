"""Test suite for the pytest-ply package.

This package contains unit and integration tests validating template
substitution, request submission, result rendering and verification,
suite runs, pytest integration and the command-line interface.
"""
