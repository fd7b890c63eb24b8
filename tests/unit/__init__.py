"""
tests.unit
==========

Fast, deterministic tests for the ledger components, the store backends, the
dispatcher and the CLI. Shared fixtures live in tests/conftest.py.
"""
