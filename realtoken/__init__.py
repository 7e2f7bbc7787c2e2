"""RealToken Client Package - session & ledger reconciliation for tokenized real estate.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports only, no star exports
"""
