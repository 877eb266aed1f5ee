from typing import Any, Dict, Generator

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.routes.widget import get_command_runner, get_plugin_config
from app.tests.fakes import API_TOKEN, HEALTH_OK, USAGE_OK, FakeGatewayRunner, ok_result


@pytest.fixture(scope="module")
def client() -> Generator[TestClient, None, None]:
    # Clear overrides at start just in case
    original_overrides = app.dependency_overrides.copy()
    app.dependency_overrides = {}
    yield TestClient(app)
    # Restore original overrides after tests
    app.dependency_overrides = original_overrides


@pytest.fixture
def plugin_config() -> Dict[str, Any]:
    return {"apiToken": API_TOKEN}


@pytest.fixture
def gateway() -> FakeGatewayRunner:
    return FakeGatewayRunner({
        "health": ok_result(HEALTH_OK),
        "usage.cost": ok_result(USAGE_OK),
    })


@pytest.fixture
def bridge(client, plugin_config, gateway):
    """Client wired to the fake gateway runner and an editable plugin config."""
    app.dependency_overrides[get_plugin_config] = lambda: plugin_config
    app.dependency_overrides[get_command_runner] = lambda: gateway
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_plugin_config, None)
        app.dependency_overrides.pop(get_command_runner, None)
