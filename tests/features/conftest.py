"""Shared fixtures for BDD feature tests.

Feature scenarios reuse the in-memory fakes wired up in ``tests/conftest.py``.
"""
