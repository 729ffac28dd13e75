"""
Test Suite

Tests for the gate pass backend. Every test runs against an in-memory
MongoDB (mongomock); see conftest.py for the shared directory and fixtures.

To run tests:
    pytest
    pytest tests/test_end_to_end.py
"""
