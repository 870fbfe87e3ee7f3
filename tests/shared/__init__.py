"""Test doubles and data factories shared by the unit and API suites."""
