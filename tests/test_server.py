"""Test logging setup and the server runner."""

import io
import json
import logging
from unittest.mock import patch

import pytest
import structlog

from flowschema.config import settings
from flowschema.server import create_uvicorn_config, run_server, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.unit
class TestUvicornConfig:
    """Test uvicorn option assembly."""

    def test_defaults_come_from_settings(self):
        config = create_uvicorn_config()

        assert config["app"] == "flowschema.main:app"
        assert config["host"] == settings.host
        assert config["port"] == settings.port

    def test_overrides(self):
        config = create_uvicorn_config(host="127.0.0.1", port=9000, workers=4)
        assert (config["host"], config["port"], config["workers"]) == ("127.0.0.1", 9000, 4)

    def test_reload_only_in_development(self):
        with patch.object(settings, "environment", "development"):
            config = create_uvicorn_config(reload=True, workers=4)
            assert config["reload"] is True
            assert config["workers"] == 1

        with patch.object(settings, "environment", "production"):
            config = create_uvicorn_config(reload=True, workers=4)
            assert config["reload"] is False
            assert config["workers"] == 4

    def test_run_server(self):
        with patch("flowschema.server.uvicorn.run") as run, patch("flowschema.server.setup_logging"):
            run_server(port=9001)

        run.assert_called_once()
        assert run.call_args.kwargs["port"] == 9001


@pytest.mark.unit
class TestLogging:
    """Test structlog configuration."""

    def test_json_lines_on_given_stream(self, restore_logging):
        stream = io.StringIO()
        setup_logging(level="DEBUG", stream=stream, json_logs=True)

        structlog.get_logger("flowschema.test").info("Schema build completed", nodes=3)

        line = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert line["event"] == "Schema build completed"
        assert line["nodes"] == 3
        assert line["level"] == "info"

    def test_level_filters_events(self, restore_logging):
        stream = io.StringIO()
        setup_logging(level="WARNING", stream=stream, json_logs=True)

        structlog.get_logger("flowschema.test").info("hidden")

        assert stream.getvalue() == ""
