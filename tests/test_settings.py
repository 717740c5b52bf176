from __future__ import annotations

import os
import unittest
from unittest import mock

from config.settings import Settings, default_program_price_ids, get_settings


class SettingsTest(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.currency, "usd")
        self.assertEqual(settings.billing_interval, "month")
        self.assertFalse(settings.use_program_price_ids)
        self.assertEqual(settings.program_price_ids, default_program_price_ids())
        self.assertEqual(settings.cors_origins, ["https://fitnessharleyquinn.netlify.app"])
        self.assertEqual(settings.static_dir.name, "public")

    def test_environment_overrides(self) -> None:
        env = {
            "STRIPE_SECRET_KEY": "sk_test_env",
            "STRIPE_WEBHOOK_SECRET": "whsec_env",
            "PORT": "8080",
            "ALLOWED_ORIGINS": "https://a.example.com, https://b.example.com;https://c.example.com",
            "CURRENCY": "USD",
            "USE_PROGRAM_PRICE_IDS": "true",
            "PROGRAM_PRICE_IDS": '{"strength": "price_live_strength"}',
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

        self.assertEqual(settings.stripe_secret_key, "sk_test_env")
        self.assertEqual(settings.stripe_webhook_secret, "whsec_env")
        self.assertEqual(settings.port, 8080)
        self.assertEqual(settings.currency, "usd")
        self.assertTrue(settings.use_program_price_ids)
        self.assertEqual(settings.program_price_ids, {"strength": "price_live_strength"})
        self.assertEqual(
            settings.cors_origins,
            ["https://a.example.com", "https://b.example.com", "https://c.example.com"],
        )


class GetSettingsTest(unittest.TestCase):
    def setUp(self) -> None:
        get_settings.cache_clear()
        self.addCleanup(get_settings.cache_clear)

    def test_invalid_field_keeps_the_other_values(self) -> None:
        env = {"PORT": "abc", "STRIPE_SECRET_KEY": "sk_test_env", "CURRENCY": "usd"}
        with mock.patch.dict(os.environ, env, clear=True):
            with mock.patch.dict(Settings.model_config, {"env_file": None}):
                with self.assertLogs("config.settings", level="ERROR") as captured:
                    settings = get_settings()

        self.assertEqual(settings.port, 3000)
        self.assertEqual(settings.stripe_secret_key, "sk_test_env")
        self.assertIn("port", captured.output[0])

    def test_result_is_cached(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            with mock.patch.dict(Settings.model_config, {"env_file": None}):
                self.assertIs(get_settings(), get_settings())


if __name__ == "__main__":
    unittest.main()
