# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tests for logging configuration and redaction."""

import pytest

from wireup.utils import logging as wireup_logging

WG_KEY = "yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk="


@pytest.fixture
def log_file(tmp_path):
    """Send logs to a temp file for one test, then restore."""
    original = wireup_logging._get_log_file()
    path = tmp_path / "wireup.log"
    wireup_logging.configure_logging(log_file=path, quiet=True, force=True)
    yield path
    wireup_logging.configure_logging(log_file=original, force=True)


def test_logger_namespace():
    assert wireup_logging.get_logger("tests.sample").name == "wireup.tests.sample"
    assert wireup_logging.get_logger("wireup.docker").name == "wireup.docker"


def test_secrets_redacted_in_log_file(log_file):
    logger = wireup_logging.get_logger("wireup.tests")

    logger.info(f"Staging config:\nPrivateKey = {WG_KEY}")
    logger.error("Auth failed", exc=RuntimeError("password=hunter2"))

    content = log_file.read_text()
    assert WG_KEY not in content
    assert "hunter2" not in content
    assert "[REDACTED]" in content


def test_custom_levels(log_file):
    logger = wireup_logging.get_logger("wireup.tests")

    logger.success("VPN connection established")
    logger.security("Config written with restrictive permissions")

    content = log_file.read_text()
    assert "SUCCESS" in content
    assert "SECURITY" in content


def test_debug_mode_from_env(monkeypatch):
    monkeypatch.setenv("WIREUP_DEBUG", "1")

    assert wireup_logging.is_debug_mode()
