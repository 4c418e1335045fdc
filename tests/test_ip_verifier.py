# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""Tests for external IP lookups."""

from unittest.mock import Mock, patch

import requests

from wireup.utils import ip_verifier


def _response(text):
    response = Mock(text=text)
    response.raise_for_status.return_value = None
    return response


class TestLookups:
    """Test direct and proxied lookups"""

    @patch("wireup.utils.ip_verifier.requests.get")
    def test_through_proxy(self, mock_get):
        mock_get.return_value = _response("203.0.113.7\n")

        assert ip_verifier.get_ip_through_proxy("127.0.0.1", 1080) == "203.0.113.7"
        mock_get.assert_called_once_with(
            ip_verifier.IP_CHECK_URL,
            proxies={
                "http": "socks5h://127.0.0.1:1080",
                "https": "socks5h://127.0.0.1:1080",
            },
            timeout=ip_verifier.TIMEOUT_SECONDS,
        )

    @patch("wireup.utils.ip_verifier.requests.get")
    def test_direct(self, mock_get):
        mock_get.return_value = _response("198.51.100.4")

        assert ip_verifier.get_current_ip() == "198.51.100.4"
        assert mock_get.call_args.kwargs["proxies"] is None

    @patch("wireup.utils.ip_verifier.requests.get")
    def test_connection_failure_returns_sentinel(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("SOCKS5 proxy refused")

        result = ip_verifier.get_ip_through_proxy("127.0.0.1", 1080)

        assert result.startswith("Error")
        assert ip_verifier.is_error(result)

    @patch("wireup.utils.ip_verifier.requests.get")
    def test_http_error_returns_sentinel(self, mock_get):
        response = _response("")
        response.raise_for_status.side_effect = requests.HTTPError("503 Service Unavailable")
        mock_get.return_value = response

        assert ip_verifier.is_error(ip_verifier.get_current_ip())

    @patch("wireup.utils.ip_verifier.requests.get")
    def test_empty_body_is_unknown(self, mock_get):
        mock_get.return_value = _response("   \n")

        assert ip_verifier.get_current_ip() == "Unknown"


class TestComparison:
    def test_different(self):
        assert ip_verifier.are_ips_different("198.51.100.4", "203.0.113.7")

    def test_same(self):
        assert not ip_verifier.are_ips_different("203.0.113.7", "203.0.113.7")

    def test_errors_and_unknown_never_differ(self):
        assert not ip_verifier.are_ips_different("Error: timeout", "203.0.113.7")
        assert not ip_verifier.are_ips_different("Unknown", "203.0.113.7")
        assert not ip_verifier.are_ips_different(None, "203.0.113.7")
