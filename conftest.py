"""
Shared pytest configuration.
"""
import pytest


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep the caller's cluster settings out of the tests."""
    for name in ("CLUSTERENV", "K_SERVICE", "GOOGLE_CLOUD_PROJECT"):
        monkeypatch.delenv(name, raising=False)
