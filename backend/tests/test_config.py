"""Tests for the configuration resolver (Settings, resolve_mode, validate_required_config)."""

import os
import unittest
from unittest.mock import patch

from autoscene.core.config import OperatingMode, Settings, get_settings, resolve_mode


class OperatingModeTests(unittest.TestCase):
    def setUp(self):
        get_settings.cache_clear()

    def tearDown(self):
        get_settings.cache_clear()

    @patch.dict(os.environ, {"OPERATING_MODE": "mock"}, clear=False)
    def test_mock_mode_from_env(self):
        self.assertEqual(Settings().operating_mode, OperatingMode.MOCK)

    @patch.dict(os.environ, {"OPERATING_MODE": "DIRECT"}, clear=False)
    def test_mode_is_case_insensitive(self):
        self.assertEqual(Settings().operating_mode, OperatingMode.DIRECT)

    @patch.dict(os.environ, {"AUTOSCENE_MODE": "proxied"}, clear=False)
    def test_mode_alias(self):
        self.assertEqual(Settings().operating_mode, OperatingMode.PROXIED)

    @patch.dict(os.environ, {"CLOUD_FUNCTIONS_URL": "https://cloud.example.test"}, clear=False)
    def test_cloud_functions_url_alias(self):
        self.assertEqual(Settings().cloud_api_url, "https://cloud.example.test")

    def test_resolve_mode_is_deterministic(self):
        s = Settings(operating_mode="direct")
        self.assertEqual(resolve_mode(s), OperatingMode.DIRECT)
        self.assertEqual(resolve_mode(s), resolve_mode(s))

    @patch.dict(os.environ, {"OPERATING_MODE": "proxied"}, clear=False)
    def test_resolve_mode_uses_cached_settings(self):
        self.assertEqual(resolve_mode(), OperatingMode.PROXIED)
        self.assertIs(get_settings(), get_settings())

    def test_resolve_mode_never_fails_without_credentials(self):
        s = Settings(operating_mode="direct", google_cloud_api_key="", openai_api_key="")
        self.assertEqual(resolve_mode(s), OperatingMode.DIRECT)


class RequiredConfigTests(unittest.TestCase):
    def test_mock_needs_nothing(self):
        s = Settings(operating_mode="mock", google_cloud_api_key="", openai_api_key="", cloud_api_url="")
        self.assertEqual(s.validate_required_config(), [])

    def test_direct_needs_both_keys(self):
        s = Settings(operating_mode="direct", google_cloud_api_key="", openai_api_key="")
        errors = s.validate_required_config()
        self.assertEqual(len(errors), 2)
        self.assertTrue(any("GOOGLE_CLOUD_API_KEY" in e for e in errors))
        self.assertTrue(any("OPENAI_API_KEY" in e for e in errors))

    def test_direct_with_keys_is_valid(self):
        s = Settings(operating_mode="direct", google_cloud_api_key="g-key", openai_api_key="o-key")
        self.assertEqual(s.validate_required_config(), [])

    def test_proxied_needs_url(self):
        s = Settings(operating_mode="proxied", cloud_api_url="")
        self.assertEqual(s.validate_required_config(), ["CLOUD_API_URL is required in proxied mode"])

    def test_strict_config_only_in_production(self):
        self.assertTrue(Settings(environment="production").strict_config)
        self.assertFalse(Settings(environment="development").strict_config)


class VisionDefaultsTests(unittest.TestCase):
    def test_language_hints_default(self):
        self.assertEqual(Settings().vision_language_hints, ["ja", "en"])

    @patch.dict(os.environ, {"VISION_LANGUAGE_HINTS": '["en"]'}, clear=False)
    def test_language_hints_json(self):
        self.assertEqual(Settings().vision_language_hints, ["en"])

    def test_caption_defaults(self):
        s = Settings()
        self.assertEqual(s.caption_model, "gpt-4o")
        self.assertAlmostEqual(s.caption_temperature, 0.8)
        self.assertEqual(s.caption_max_tokens, 200)
        self.assertEqual(s.vision_max_labels, 10)
        self.assertEqual(s.analysis_top_labels, 3)
