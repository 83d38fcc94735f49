import pytest

from unichat.config import DEFAULT_BASE_URLS, Settings, load_settings
from unichat.errors import ErrorKind, UnichatError
from unichat.models import DEFAULT_MAX_TOKENS, ModelRegistry, ModelSpec
from unichat.types import ProviderKind, SystemPromptPolicy


class TestModelRegistry:

    def test_unknown_model(self, registry):
        with pytest.raises(UnichatError, match="Model 'gpt-99' is currently not supported") as excinfo:
            registry.get("gpt-99")
        assert excinfo.value.kind is ErrorKind.UNSUPPORTED

    def test_provider_families(self, registry):
        assert registry.get("claude-sonnet-4-20250514").kind is ProviderKind.ANTHROPIC
        assert registry.get("deepseek-chat").kind is ProviderKind.OPENAI
        assert registry.get("deepseek-chat").provider == "deepseek"
        assert registry.get("mistral-large-latest").kind is ProviderKind.MISTRAL
        assert registry.get("gemini-2.5-pro").kind is ProviderKind.GEMINI

    def test_reasoning_model_flags(self, registry):
        o1_mini = registry.get("o1-mini")
        assert o1_mini.system_prompt is SystemPromptPolicy.MERGE
        assert not o1_mini.supports_tools
        assert o1_mini.fixed_temperature == 1.0
        assert registry.get("o3").system_prompt is SystemPromptPolicy.RELABEL

    def test_output_tokens(self, registry):
        assert registry.get("claude-opus-4-20250514").output_tokens == 32000
        assert registry.get("gpt-4o").output_tokens == DEFAULT_MAX_TOKENS

    def test_register_and_override(self):
        registry = ModelRegistry(models=[])
        assert registry.names() == []
        registry.register(ModelSpec("local-llama", "openai", ProviderKind.OPENAI))
        assert "local-llama" in registry
        updated = registry.with_overrides("local-llama", max_tokens=1024)
        assert registry.get("local-llama") is updated
        assert updated.output_tokens == 1024

    def test_names_by_kind(self, registry):
        names = registry.names(ProviderKind.GEMINI)
        assert "gemini-2.0-flash" in names
        assert "gpt-4o" not in names


class TestSettings:

    def test_missing_key(self):
        with pytest.raises(UnichatError, match="XAI_API_KEY") as excinfo:
            Settings().credentials_for("xai")
        assert excinfo.value.kind is ErrorKind.UNSUPPORTED

    def test_default_base_url(self):
        credentials = Settings(api_keys={"deepseek": "k"}).credentials_for("deepseek")
        assert credentials.api_key == "k"
        assert credentials.base_url == DEFAULT_BASE_URLS["deepseek"]

    def test_openai_has_no_default_base_url(self):
        assert Settings(api_keys={"openai": "k"}).credentials_for("openai").base_url is None

    def test_explicit_arguments_win(self):
        settings = Settings(api_keys={"mistral": "env"}, base_urls={"mistral": "https://proxy"})
        assert settings.credentials_for("mistral").base_url == "https://proxy"
        credentials = settings.credentials_for("mistral", api_key="explicit", base_url="https://other")
        assert credentials.api_key == "explicit"
        assert credentials.base_url == "https://other"

    def test_load_settings_reads_env(self, mock_env):
        settings = load_settings()
        assert settings.api_keys["openai"] == "sk-test-openai"
        assert settings.api_keys["google"] == "AIza-test-google"

    def test_load_settings_reads_dotenv_file(self, tmp_path, monkeypatch):
        # register both variables with monkeypatch so values set by the .env load are undone
        monkeypatch.setenv("DASHSCOPE_API_KEY", "placeholder")
        monkeypatch.delenv("DASHSCOPE_API_KEY")
        monkeypatch.setenv("DASHSCOPE_BASE_URL", "placeholder")
        monkeypatch.delenv("DASHSCOPE_BASE_URL")

        env_file = tmp_path / ".env"
        env_file.write_text("DASHSCOPE_API_KEY=sk-dash\nDASHSCOPE_BASE_URL=https://dash.example\n")

        settings = load_settings(env_file)
        assert settings.api_keys["dashscope"] == "sk-dash"
        assert settings.credentials_for("dashscope").base_url == "https://dash.example"
