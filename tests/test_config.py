#!/usr/bin/env python3
"""Tests for environment configuration and contact details."""

from garage import CONTACT_INFO, MOTSettings
from garage.config import DEFAULT_API_BASE_URL, DEFAULT_TOKEN_URL, data_file, secret_key


class TestMOTSettings:
    """Tests for MOTSettings.from_env."""

    def test_defaults(self):
        settings = MOTSettings.from_env({})
        assert not settings.is_configured
        assert settings.token_url == DEFAULT_TOKEN_URL
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.timeout == 30.0

    def test_configured(self):
        settings = MOTSettings.from_env(
            {
                "MOT_CLIENT_ID": " cid ",
                "MOT_CLIENT_SECRET": "secret",
                "MOT_API_KEY": "key",
                "MOT_API_BASE_URL": "https://mot.example/v1/",
                "MOT_TIMEOUT": "5",
            }
        )
        assert settings.is_configured
        assert settings.client_id == "cid"
        assert settings.api_base_url == "https://mot.example/v1"
        assert settings.timeout == 5.0

    def test_partial_credentials(self):
        settings = MOTSettings.from_env({"MOT_CLIENT_ID": "cid", "MOT_API_KEY": "key"})
        assert not settings.is_configured


class TestFileSettings:
    """Tests for data_file and secret_key."""

    def test_data_file(self):
        assert data_file({}) == "garage.json"
        assert data_file({"GARAGE_DATA_FILE": "/srv/bvm.json"}) == "/srv/bvm.json"

    def test_secret_key(self):
        assert secret_key({}) == "dev"
        assert secret_key({"SECRET_KEY": "s3cret"}) == "s3cret"


class TestContactInfo:
    """Tests for CONTACT_INFO links."""

    def test_phone_link(self):
        assert CONTACT_INFO.phone_link == "tel:+441304732747"

    def test_email_link(self):
        assert CONTACT_INFO.email_link == "mailto:info@bvmdeal.co.uk"

    def test_maps_link(self):
        assert CONTACT_INFO.maps_link == (
            "https://www.google.com/maps/search/?api=1&query=51.228312,1.388879"
        )
