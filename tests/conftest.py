"""Root test configuration for EmberGuard.

Clears every EMBERGUARD_* environment variable for the whole suite so a
developer's shell (or a CI runner) cannot leak a threshold, log level or
config path into tests. Tests that exercise env overrides set them
explicitly with monkeypatch.
"""

import os

import pytest

from emberguard.config import PipelineConfig
from emberguard.models.scan import ThreatLevel
from emberguard.pipeline import SecurityPipeline


@pytest.fixture(autouse=True)
def clear_emberguard_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove EMBERGUARD_* variables inherited from the invoking environment."""
    for name in list(os.environ):
        if name.startswith("EMBERGUARD_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def owner_number() -> str:
    return "+15551234567"


@pytest.fixture
def pipeline_config(owner_number: str) -> PipelineConfig:
    """The single-owner policy used across pipeline tests."""
    return PipelineConfig(
        allowed_senders=frozenset({owner_number}),
        block_group_contexts=True,
        inbound_block_threshold=ThreatLevel.HIGH,
    )


@pytest.fixture
def pipeline(pipeline_config: PipelineConfig) -> SecurityPipeline:
    return SecurityPipeline(pipeline_config)
