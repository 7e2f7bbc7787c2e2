"""Services Layer - async shell around the pure core.

Invariants:
    - Session, caches and orchestrator state are mutated only through their entry points
    - RealTokenError is caught at the boundary and turned into a notification
"""
