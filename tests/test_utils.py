"""Unit tests for lib/utils.py.

Tests cover version parsing/comparison and logging setup.
"""

import json
import logging

import pytest

from lib.utils import JSONFormatter, is_version_ge, parse_version, setup_logging


@pytest.mark.unit
class TestVersionComparison:
    @pytest.mark.parametrize(
        "version,compare_to,expected",
        [
            ("v1.27.3", "v1.18.0", True),
            ("v1.18.0", "v1.18.0", True),
            ("v1.17.9", "v1.18.0", False),
            ("v1.27.3-gke.100", "v1.18.0", True),
            ("v1.27.3+k3s1", "v1.18.0", True),
            ("3.12.0", "3.0.0", True),
            ("2.17.0", "3.0.0", False),
            ("v1.10.0", "v1.9.0", True),
        ],
    )
    def test_is_version_ge(self, version, compare_to, expected):
        assert is_version_ge(version, compare_to) is expected

    @pytest.mark.parametrize("version", ["", "unknown", "v"])
    def test_unparsable_is_not_ge(self, version):
        assert is_version_ge(version, "1.0.0") is False

    def test_parse_version_strips_prefix_and_suffix(self):
        assert str(parse_version("v1.27.3-eks-2d98532")) == "1.27.3"

    def test_parse_version_none(self):
        assert parse_version("not-a-version") is None


@pytest.mark.unit
class TestSetupLogging:
    def test_returns_named_logger(self):
        logger = setup_logging()

        assert logger.name == "k8s_preflight"
        assert logging.getLogger().level == logging.INFO

    def test_verbose_enables_debug(self):
        setup_logging(verbose=True)

        assert logging.getLogger().level == logging.DEBUG

    def test_quiets_client_libraries(self):
        setup_logging(verbose=False)

        assert logging.getLogger("kubernetes").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_json_format(self):
        setup_logging(log_format="json")

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JSONFormatter)

    def test_json_formatter_output(self):
        record = logging.LogRecord("k8s_preflight", logging.INFO, __file__, 10, "hello %s", ("world",), None)

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello world"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "k8s_preflight"
