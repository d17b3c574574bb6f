"""Shared pytest fixtures for the recipe finder tests."""

from unittest.mock import Mock

import pytest
import requests

from app_config import load_config


TEST_ENV = {
    "RECIPE_PROVIDER": "spoonacular",
    "SPOONACULAR_API_KEY": "test-spoon-key",
    "SPOONACULAR_BASE_URL": "https://api.spoonacular.test/recipes",
    "EDAMAM_APP_ID": "test-app-id",
    "EDAMAM_APP_KEY": "test-app-key",
    "EDAMAM_BASE_URL": "https://api.edamam.test/api/recipes/v2",
    "MAX_RESULTS": "12",
}


@pytest.fixture
def make_config():
    """Build a config from the test environment plus overrides."""
    def _make(**overrides):
        env = dict(TEST_ENV)
        env.update({k.upper(): str(v) for k, v in overrides.items()})
        return load_config(env)
    return _make


@pytest.fixture
def config(make_config):
    return make_config().validate()


@pytest.fixture
def fake_response():
    """Build a stand-in for requests.Response."""
    def _make(payload=None, status=200, invalid_json=False):
        response = Mock()
        response.status_code = status
        response.reason = "OK" if status < 400 else "Error"
        if invalid_json:
            response.json.side_effect = ValueError("Expecting value")
        else:
            response.json.return_value = payload
        if status >= 400:
            response.raise_for_status.side_effect = requests.exceptions.HTTPError(
                f"{status} Error", response=response
            )
        else:
            response.raise_for_status.return_value = None
        return response
    return _make
