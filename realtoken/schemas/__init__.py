"""Schemas - Pydantic models for records crossing the ledger boundary.

Invariants:
    - Wire aliases (camelCase, legacy ledger names) accepted on input
    - Models are frozen once parsed
"""
