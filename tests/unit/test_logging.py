"""Tests for Logfire setup and PII masking."""

import logging

import pytest
from fastapi import FastAPI
from hypothesis import given, strategies as st

from src.logging_config import mask_pii, setup_logfire


class TestSetupLogfire:
    """Tests for setup_logfire()."""

    def test_configures_and_instruments(self, mock_settings, mock_logfire):
        app = FastAPI()

        setup_logfire(app)

        mock_logfire.configure.assert_called_once_with(
            environment="local", send_to_logfire="if-token-present"
        )
        mock_logfire.instrument_fastapi.assert_called_once_with(app)
        mock_logfire.instrument_pydantic.assert_called_once()
        mock_logfire.instrument_httpx.assert_called_once()
        mock_logfire.instrument_pydantic_ai.assert_called_once()

    def test_passes_token_when_set(self, mock_settings, mock_logfire, monkeypatch):
        monkeypatch.setattr(mock_settings, "logfire_token", "lf_token")
        monkeypatch.setattr(mock_settings, "env", "prod")

        setup_logfire(FastAPI())

        kwargs = mock_logfire.configure.call_args.kwargs
        assert kwargs["token"] == "lf_token"
        assert kwargs["environment"] == "prod"

    def test_sets_log_level(self, mock_settings, mock_logfire, monkeypatch):
        monkeypatch.setattr(mock_settings, "log_level", "debug")
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

        setup_logfire(FastAPI())

        assert calls[0]["level"] == logging.DEBUG


class TestMaskPii:
    """Tests for mask_pii()."""

    def test_masks_ip_address(self):
        assert mask_pii("192.168.1.10") == "19********10"

    @pytest.mark.parametrize("value", ["", None])
    def test_empty(self, value):
        assert mask_pii(value) == ""

    def test_short_values_fully_masked(self):
        assert mask_pii("abcd") == "****"
        assert mask_pii("ab", mask_char="#") == "##"

    @given(value=st.text(min_size=5, max_size=100))
    def test_mask_properties(self, value: str):
        """Property: length is preserved and only the edges stay visible."""
        masked = mask_pii(value)

        assert len(masked) == len(value)
        assert masked[:2] == value[:2]
        assert masked[-2:] == value[-2:]
        assert set(masked[2:-2]) == {"*"}
