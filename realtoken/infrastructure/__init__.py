"""Infrastructure Layer - remote ledger and identity adapters, logging setup.

Invariants:
    - Infrastructure never imports from services/
    - All external calls wrapped with timeout/error mapping into core/errors.py
"""
