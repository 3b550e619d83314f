"""
Test configuration — sets required env vars before any imports.
"""

import os

import pytest

# Set dummy env vars so Settings() doesn't fail during test collection.
# These are never used for real calls — the record source is mocked.
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")


@pytest.fixture(autouse=True)
def _fresh_rate_limiter():
    """Each test starts with empty rate-limit windows."""
    from horse_dashboard.services.rate_limiter import get_rate_limiter

    get_rate_limiter().reset()
    yield
