"""Workspace-level pytest configuration and fixtures.

Keeps tests independent of the developer's shell: settings read from the
environment by ``from_properties`` are cleared before every test.
"""

import pytest

ENVIRONMENT_SETTINGS = [
    "PII_DISCOVERY_DATABASE_PATH",
    "PII_DISCOVERY_GRAPH_PATH",
    "PII_DISCOVERY_SAMPLE_SIZE",
    "PII_DISCOVERY_MAX_CONCURRENCY",
    "PII_DISCOVERY_LLM_ENABLED",
    "LLM_PROVIDER",
    "ANTHROPIC_API_KEY",
    "ANTHROPIC_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
]


@pytest.fixture(autouse=True, scope="function")
def isolate_environment(
    request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Remove configuration environment variables for each test.

    Integration tests keep their API keys.
    """
    if request.node.get_closest_marker("integration"):
        return
    for name in ENVIRONMENT_SETTINGS:
        monkeypatch.delenv(name, raising=False)
