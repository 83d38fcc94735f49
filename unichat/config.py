"""
Credential and endpoint configuration.

Keys are read from the process environment after loading a ``.env`` file,
one ``<PREFIX>_API_KEY`` (and optional ``<PREFIX>_BASE_URL``) per vendor.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Union
from pathlib import Path

import dotenv

from .errors import unsupported

# Environment variable prefix per vendor key used in the model registry
ENV_PREFIXES: Dict[str, str] = {
    "openai": "OPENAI",
    "anthropic": "ANTHROPIC",
    "google": "GOOGLE",
    "deepseek": "DEEPSEEK",
    "xai": "XAI",
    "dashscope": "DASHSCOPE",
    "mistral": "MISTRAL",
}

# OpenAI-compatible vendors need an explicit endpoint
DEFAULT_BASE_URLS: Dict[str, str] = {
    "xai": "https://api.x.ai/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "dashscope": "https://dashscope-intl.aliyuncs.com/compatible-mode/v1",
    "mistral": "https://api.mistral.ai/v1",
}

# Timeout handed to the SDK clients; this layer imposes none of its own
CLIENT_TIMEOUT_SECONDS = 600.0


@dataclass(frozen=True)
class Credentials:
    api_key: str
    base_url: Optional[str] = None


@dataclass
class Settings:
    """
    Per-vendor API keys and base URL overrides.
    """
    api_keys: Dict[str, str] = field(default_factory=dict)
    base_urls: Dict[str, str] = field(default_factory=dict)

    def credentials_for(
        self,
        provider: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> Credentials:
        """
        Resolve credentials for a vendor, explicit arguments taking precedence.

        Raises:
            UnichatError: kind UNSUPPORTED when no API key is available.
        """
        key = api_key or self.api_keys.get(provider)
        if not key:
            prefix = ENV_PREFIXES.get(provider, provider.upper())
            raise unsupported(
                f"No API key configured for provider '{provider}'. "
                f"Pass api_key or set {prefix}_API_KEY.",
                provider=provider,
            )
        url = base_url or self.base_urls.get(provider) or DEFAULT_BASE_URLS.get(provider)
        return Credentials(api_key=key, base_url=url)


def load_settings(dotenv_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build Settings from a .env file and the process environment.

    Args:
        dotenv_path: Explicit .env location. Defaults to searching from the
                     current directory upwards.

    Returns:
        Settings populated with every vendor key that is set.
    """
    dotenv.load_dotenv(dotenv_path=dotenv_path or dotenv.find_dotenv(usecwd=True))

    api_keys: Dict[str, str] = {}
    base_urls: Dict[str, str] = {}
    for provider, prefix in ENV_PREFIXES.items():
        key = os.getenv(f"{prefix}_API_KEY")
        if key:
            api_keys[provider] = key
        url = os.getenv(f"{prefix}_BASE_URL")
        if url:
            base_urls[provider] = url
    return Settings(api_keys=api_keys, base_urls=base_urls)
