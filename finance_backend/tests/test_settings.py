import logging
import os
import unittest
from unittest import mock

from finance_backend.settings import (
    DEFAULT_AI_BASE_URL,
    AiSettings,
    JwtSettings,
    SmtpSettings,
    configure_logging,
    env_bool,
    env_int,
)


class EnvHelperTests(unittest.TestCase):
    def test_invalid_numbers_fall_back_to_default(self) -> None:
        with mock.patch.dict(os.environ, {"SOME_PORT": "abc"}):
            self.assertEqual(env_int("SOME_PORT", 587), 587)
        with mock.patch.dict(os.environ, {"SOME_PORT": " 2525 "}):
            self.assertEqual(env_int("SOME_PORT", 587), 2525)

    def test_boolean_parsing(self) -> None:
        with mock.patch.dict(os.environ, {"FLAG": "Yes"}):
            self.assertTrue(env_bool("FLAG", False))
        with mock.patch.dict(os.environ, {"FLAG": "off"}):
            self.assertFalse(env_bool("FLAG", True))
        with mock.patch.dict(os.environ, {"FLAG": "maybe"}):
            self.assertTrue(env_bool("FLAG", True))


class SettingsFromEnvTests(unittest.TestCase):
    def test_ai_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = AiSettings.from_env()

        self.assertEqual(settings.provider, "gemini")
        self.assertEqual(settings.base_url, DEFAULT_AI_BASE_URL)
        self.assertEqual(settings.model, "gemini-2.0-flash")
        self.assertEqual(settings.api_key_header, "X-goog-api-key")
        self.assertEqual(settings.temperature, 0.2)
        self.assertEqual(settings.max_tokens, 1024)
        self.assertIsNone(settings.organization)
        self.assertFalse(settings.use_bearer_prefix)

    def test_ai_overrides(self) -> None:
        env = {
            "AI_PROVIDER": "openai",
            "AI_BASE_URL": "https://api.example/v1",
            "AI_API_KEY": "sk",
            "AI_TEMPERATURE": "0.7",
            "AI_MAX_TOKENS": "256",
            "AI_USE_BEARER": "true",
            "AI_ORGANIZATION": "org-1",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = AiSettings.from_env()

        self.assertEqual(settings.provider, "openai")
        self.assertEqual(settings.temperature, 0.7)
        self.assertEqual(settings.max_tokens, 256)
        self.assertTrue(settings.use_bearer_prefix)
        self.assertEqual(settings.organization, "org-1")

    def test_jwt_and_smtp_settings(self) -> None:
        env = {
            "JWT_KEY": "k",
            "JWT_ISSUER": "iss",
            "JWT_AUDIENCE": "aud",
            "JWT_EXPIRES_MINUTES": "15",
            "SMTP_HOST": "smtp.example.com",
            "SMTP_ENABLE_SSL": "false",
            "PASSWORD_RESET_LINK_BASE": "https://app.example.com/reset",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            jwt_settings = JwtSettings.from_env()
            smtp_settings = SmtpSettings.from_env()

        self.assertEqual(jwt_settings, JwtSettings(key="k", issuer="iss", audience="aud", expires_minutes=15))
        self.assertEqual(smtp_settings.host, "smtp.example.com")
        self.assertEqual(smtp_settings.port, 587)
        self.assertFalse(smtp_settings.enable_ssl)
        self.assertEqual(smtp_settings.reset_link_base, "https://app.example.com/reset")


class LoggingConfigurationTests(unittest.TestCase):
    def test_existing_handlers_are_left_alone(self) -> None:
        root = logging.getLogger()
        handler = logging.NullHandler()
        original_handlers = root.handlers[:]
        root.handlers = [handler]
        try:
            with mock.patch("finance_backend.settings.logging.basicConfig") as basic_config:
                configure_logging("DEBUG")
            basic_config.assert_not_called()
        finally:
            root.handlers = original_handlers

    def test_installs_handler_when_root_is_bare(self) -> None:
        root = logging.getLogger()
        original_handlers = root.handlers[:]
        root.handlers = []
        try:
            with mock.patch("finance_backend.settings.logging.basicConfig") as basic_config:
                configure_logging("warning")
            basic_config.assert_called_once()
            self.assertEqual(basic_config.call_args.kwargs["level"], logging.WARNING)
        finally:
            root.handlers = original_handlers


if __name__ == "__main__":
    unittest.main()
