"""Tests for credential resolution and client configuration."""

import base64
import json

import pytest

from watson_apis import (
    ConfigurationError,
    LanguageTranslatorV2,
    ServiceConfig,
    language_translator,
    resolve_credentials,
)
from watson_apis.utils import find_service_binding

from conftest import BINDING

DEFAULT_URL = LanguageTranslatorV2.DEFAULT_URL


def resolve(options=None, env=None):
    return resolve_credentials("language_translator", options or {}, env or {}, DEFAULT_URL, "v2")


class TestResolveCredentials:
    def test_explicit_credentials(self):
        config = resolve({"username": "u", "password": "p", "url": "http://example.com/api"})
        assert config == ServiceConfig(url="http://example.com/api", version="v2", username="u", password="p")

    def test_basic_authorization_header(self):
        config = resolve({"username": "u", "password": "p"})
        assert config.authorization == "Basic " + base64.b64encode(b"u:p").decode("ascii")

    def test_token_is_bearer(self):
        config = resolve({"token": "abc"})
        assert config.authorization == "Bearer abc"
        assert config.default_headers()["Authorization"] == "Bearer abc"

    def test_default_url(self):
        assert resolve({"username": "u", "password": "p"}).url == DEFAULT_URL

    def test_trailing_slash_stripped(self):
        assert resolve({"username": "u", "password": "p", "url": "http://x/api/"}).url == "http://x/api"

    def test_environment_variables(self):
        env = {
            "LANGUAGE_TRANSLATOR_USERNAME": "env-user",
            "LANGUAGE_TRANSLATOR_PASSWORD": "env-pass",
            "LANGUAGE_TRANSLATOR_URL": "http://env.example.com",
        }
        config = resolve(env=env)
        assert (config.username, config.password, config.url) == ("env-user", "env-pass", "http://env.example.com")

    def test_environment_url_with_explicit_credentials(self):
        config = resolve({"username": "u", "password": "p"}, {"LANGUAGE_TRANSLATOR_URL": "http://env.example.com"})
        assert config.url == "http://env.example.com"

    def test_environment_variables_win_over_binding(self):
        env = {
            "LANGUAGE_TRANSLATOR_USERNAME": "env-user",
            "LANGUAGE_TRANSLATOR_PASSWORD": "env-pass",
            "VCAP_SERVICES": json.dumps({"language_translator": [BINDING]}),
        }
        assert resolve(env=env).username == "env-user"

    def test_explicit_credentials_win_over_binding(self):
        env = {"VCAP_SERVICES": json.dumps({"language_translator": [BINDING]})}
        config = resolve({"username": "u", "password": "p"}, env)
        assert (config.username, config.password) == ("u", "p")

    @pytest.mark.parametrize("services", [
        {"language_translator": [BINDING]},
        [BINDING],
        {"user-provided": [BINDING]},
    ])
    def test_vcap_services_shapes(self, services):
        config = resolve(env={"VCAP_SERVICES": json.dumps(services)})
        assert config.username == "FAKE_USERNAME"
        assert config.password == "FAKE_PASSWORD"
        assert config.url == BINDING["credentials"]["url"]
        assert config.authorization

    def test_first_binding_wins(self):
        second = {"label": "language_translator", "credentials": {"username": "other", "password": "other"}}
        env = {"VCAP_SERVICES": json.dumps({"language_translator": [BINDING, second]})}
        assert resolve(env=env).username == "FAKE_USERNAME"

    def test_unrelated_binding_ignored(self):
        other = dict(BINDING, label="speech_to_text")
        with pytest.raises(ConfigurationError):
            resolve(env={"VCAP_SERVICES": json.dumps({"speech_to_text": [other]})})

    def test_invalid_vcap_services(self):
        with pytest.raises(ConfigurationError, match="VCAP_SERVICES"):
            resolve(env={"VCAP_SERVICES": "{not json"})

    def test_no_credentials(self):
        with pytest.raises(ConfigurationError, match="Insufficient credentials"):
            resolve()

    def test_username_without_password(self):
        with pytest.raises(ConfigurationError):
            resolve({"username": "u"})

    def test_use_unauthenticated(self):
        config = resolve({"use_unauthenticated": True})
        assert config.authorization is None
        assert "Authorization" not in config.default_headers()

    def test_extra_headers(self):
        config = resolve({"token": "t", "headers": {"X-Custom": "1"}})
        assert config.default_headers()["X-Custom"] == "1"

    def test_config_is_immutable(self):
        config = resolve({"username": "u", "password": "p"})
        with pytest.raises(AttributeError):
            config.url = "http://other"

    def test_config_is_hashable(self):
        first = resolve({"token": "t", "headers": {"X-Custom": "1"}})
        second = resolve({"token": "t", "headers": {"X-Custom": "1"}})
        assert first.headers == (("X-Custom", "1"),)
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_partial_environment_does_not_mix_with_binding(self):
        env = {
            "LANGUAGE_TRANSLATOR_USERNAME": "env-user",
            "VCAP_SERVICES": json.dumps({"language_translator": [BINDING]}),
        }
        config = resolve(env=env)
        assert (config.username, config.password) == ("FAKE_USERNAME", "FAKE_PASSWORD")

    def test_partial_explicit_does_not_mix_with_binding(self):
        env = {"VCAP_SERVICES": json.dumps({"language_translator": [BINDING]})}
        config = resolve({"username": "u"}, env)
        assert (config.username, config.password) == ("FAKE_USERNAME", "FAKE_PASSWORD")


class TestFindServiceBinding:
    def test_keyed_list(self):
        assert find_service_binding({"language_translator": [BINDING]}, "language_translator") is BINDING

    def test_flat_list_by_label(self):
        assert find_service_binding([{"label": "x"}, BINDING], "language_translator") is BINDING

    def test_not_bound(self):
        assert find_service_binding({}, "language_translator") is None
        assert find_service_binding("nonsense", "language_translator") is None


class TestClientConstruction:
    def test_missing_credentials_fail_at_construction(self):
        with pytest.raises(ConfigurationError):
            LanguageTranslatorV2(env={})

    def test_version_mismatch(self):
        with pytest.raises(ConfigurationError, match="version"):
            LanguageTranslatorV2(username="u", password="p", version="v3", env={})

    def test_factory_unknown_version(self):
        with pytest.raises(ConfigurationError, match="Unknown"):
            language_translator(version="v1", username="u", password="p", env={})

    def test_factory_returns_v2_client(self):
        client = language_translator(username="u", password="p", env={})
        assert isinstance(client, LanguageTranslatorV2)
        assert client.config.version == "v2"

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("VCAP_SERVICES", json.dumps({"language_translator": [BINDING]}))
        client = LanguageTranslatorV2()
        assert client.default_headers["Authorization"]
