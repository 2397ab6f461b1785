"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from tests.fixtures.decision_fixtures import make_scenario, make_task_context

if TYPE_CHECKING:
    from chancery.models.context import TaskContext
    from chancery.models.scenario import Scenario, ScenarioIndex


@pytest.fixture(autouse=True, scope="session")
def disable_langsmith_tracing() -> None:
    """Disable LangSmith tracing during test runs.

    Set LANGSMITH_TEST_TRACING=true to override for debugging.
    """
    if os.environ.get("LANGSMITH_TEST_TRACING", "").lower() != "true":
        os.environ["LANGSMITH_TRACING"] = "false"


@pytest.fixture
def scenario() -> Scenario:
    return make_scenario()


@pytest.fixture
def scenario_index(scenario: Scenario) -> ScenarioIndex:
    return scenario.index()


@pytest.fixture
def task_context() -> TaskContext:
    return make_task_context()
