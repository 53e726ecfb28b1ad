"""
Test suite for the ticker price workbench.

Includes:
- Unit tests beside each package (<package>/tests/)
- CLI tests run against a temp SQLite file
"""
