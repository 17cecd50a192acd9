"""Test configuration shared by unit and integration tests."""

from pathlib import Path

from dotenv import load_dotenv

# Integration tests read provider keys from a local .env when one exists
env_file = Path(__file__).parent.parent / ".env"
if env_file.exists():
    load_dotenv(env_file)
