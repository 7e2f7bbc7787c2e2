"""Root conftest - shared test configuration."""

import os

# Ensure tests never talk to a real replica or identity service
os.environ.setdefault("LEDGER_URL", "http://ledger.test")
os.environ.setdefault("IDENTITY_URL", "http://identity.test")
os.environ.setdefault("IDENTITY_SECRET", "test-secret")
os.environ.setdefault("NETWORK", "local")
