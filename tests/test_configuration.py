"""Tests for configuration loading."""

from types import SimpleNamespace

import pytest

pytest.importorskip("prepper")

from docxlate import configuration  # noqa: E402
from docxlate.structures import HostedApiConfig, LocalModelConfig  # noqa: E402

KEYS = (
    "TRANSLATION_BACKEND",
    "LOCAL_MODEL_ENDPOINT",
    "LOCAL_MODEL_NAME",
    "HOSTED_API_KEY",
    "HOSTED_API_BASE_URL",
    "HOSTED_API_MODEL",
    "DOCXLATE_SOURCE_LANGUAGE",
    "DOCXLATE_TARGET_LANGUAGE",
    "DOCXLATE_SPLIT_SENTENCES",
    "DOCXLATE_PROVIDER_DEBUG",
)


@pytest.fixture
def clean_environment(monkeypatch):
    for key in KEYS:
        monkeypatch.delenv(key, raising=False)
    configuration._load_config_instance.cache_clear()
    yield
    configuration._load_config_instance.cache_clear()


def settings(**overrides):
    values = {
        "TRANSLATION_BACKEND": "local_model",
        "LOCAL_MODEL_ENDPOINT": "http://localhost:11434",
        "LOCAL_MODEL_NAME": "qwen2.5:7b",
        "HOSTED_API_KEY": None,
        "HOSTED_API_BASE_URL": "https://api.deepseek.com",
        "HOSTED_API_MODEL": "deepseek-chat",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class TestBuildTranslationConfig:
    """Tests for turning settings into backend configurations."""

    def test_local_backend(self):
        config = configuration.build_translation_config(settings())
        assert config == LocalModelConfig(endpoint="http://localhost:11434", model="qwen2.5:7b")

    def test_hosted_backend(self):
        config = configuration.build_translation_config(
            settings(TRANSLATION_BACKEND="hosted_api", HOSTED_API_KEY="sk-test")
        )
        assert config == HostedApiConfig(api_key="sk-test")

    def test_overrides_win(self):
        config = configuration.build_translation_config(
            settings(),
            backend="hosted_api",
            model="deepseek-reasoner",
            api_key="sk-cli",
        )
        assert config == HostedApiConfig(
            api_key="sk-cli",
            base_url="https://api.deepseek.com",
            model="deepseek-reasoner",
        )


class TestLoading:
    """Tests for layered loading from a .env file."""

    def test_dotenv_values_loaded(self, tmp_path, clean_environment):
        (tmp_path / ".env").write_text(
            "TRANSLATION_BACKEND=ollama\nLOCAL_MODEL_NAME=llama3\nDOCXLATE_TARGET_LANGUAGE=Spanish\n",
            encoding="utf-8",
        )

        loaded = configuration.get_settings(app_dir=tmp_path)

        assert loaded.TRANSLATION_BACKEND == "local_model"
        assert loaded.LOCAL_MODEL_NAME == "llama3"
        assert loaded.DOCXLATE_TARGET_LANGUAGE == "Spanish"
        assert loaded.LOCAL_MODEL_ENDPOINT == "http://localhost:11434"

    def test_process_environment_overrides_dotenv(self, tmp_path, clean_environment, monkeypatch):
        (tmp_path / ".env").write_text("LOCAL_MODEL_NAME=llama3\n", encoding="utf-8")
        monkeypatch.setenv("LOCAL_MODEL_NAME", "mistral")

        assert configuration.get_settings(app_dir=tmp_path).LOCAL_MODEL_NAME == "mistral"
