import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dotenv import load_dotenv

CONFIG_PATH = Path("config.json")
ENV_OVERRIDE_KEY = "NOTEWISE_ENV_OVERRIDES_CONFIG"
ENV_OVERRIDE_TRUE = {"1", "true", "yes", "on"}
SECRET_MASK = "********"


class OllamaConfig(BaseModel):
    enabled: bool = True
    url: str = "http://localhost:11434/api/generate"
    model: str = "gemma3:4b"
    timeout_s: Optional[float] = None

    model_config = {"protected_namespaces": ()}


class GeminiConfig(BaseModel):
    api_key: Optional[str] = None
    model: str = "gemini-1.5-flash-latest"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_s: Optional[float] = None

    model_config = {"protected_namespaces": ()}


class HuggingFaceConfig(BaseModel):
    api_token: Optional[str] = None
    model_url: str = "https://api-inference.huggingface.co/models/facebook/bart-large-cnn"
    timeout_s: Optional[float] = None

    model_config = {"protected_namespaces": ()}


class PreambleConfig(BaseModel):
    # Regex alternatives; matched case-insensitively at the start of the text.
    summary_leadins: List[str] = Field(default_factory=lambda: ["Here's", "Here is", "Sure", "Okay"])
    synonym_leadins: List[str] = Field(
        default_factory=lambda: ["Here are", "Here is", "Here's", "Sure", "Okay", "Synonyms", r"\d+\s+synonyms"]
    )


class AppSettings(BaseModel):
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    huggingface: HuggingFaceConfig = Field(default_factory=HuggingFaceConfig)
    preamble: PreambleConfig = Field(default_factory=PreambleConfig)

    # Provider order, highest preference first.
    provider_order: List[str] = Field(default_factory=lambda: ["ollama", "gemini", "huggingface"])
    provider_timeout_s: float = 10.0
    offline_fallback: bool = False

    database_path: str = "notewise.db"
    host: str = "0.0.0.0"
    port: int = 5000

    def to_safe_dict(self) -> dict:
        data = self.model_dump()
        if data["gemini"].get("api_key"):
            data["gemini"]["api_key"] = SECRET_MASK
        if data["huggingface"].get("api_token"):
            data["huggingface"]["api_token"] = SECRET_MASK
        return data

    def configured_providers(self) -> Dict[str, bool]:
        """Report which providers could be tried, without touching the network."""
        return {
            "ollama": self.ollama.enabled,
            "gemini": bool(self.gemini.api_key),
            "huggingface": bool(self.huggingface.api_token),
        }

    model_config = {"protected_namespaces": ()}


def _load_from_env() -> dict:
    load_dotenv()
    env_map = {
        "ollama_url": os.getenv("OLLAMA_URL"),
        "ollama_model": os.getenv("OLLAMA_MODEL"),
        "ollama_enabled": os.getenv("OLLAMA_ENABLED"),
        "gemini_api_key": os.getenv("GEMINI_API_KEY"),
        "gemini_model": os.getenv("GEMINI_MODEL"),
        "hf_api_token": os.getenv("HF_API_TOKEN"),
        "hf_model_url": os.getenv("HF_MODEL_URL"),
        "database_path": os.getenv("DATABASE_PATH"),
        "host": os.getenv("HOST"),
        "port": os.getenv("PORT"),
        "provider_timeout_s": os.getenv("PROVIDER_TIMEOUT_S"),
        "offline_fallback": os.getenv("OFFLINE_FALLBACK"),
    }
    cleaned = {k: v for k, v in env_map.items() if v not in (None, "")}
    if "port" in cleaned:
        cleaned["port"] = int(cleaned["port"])
    if "provider_timeout_s" in cleaned:
        cleaned["provider_timeout_s"] = float(cleaned["provider_timeout_s"])
    for key in ("offline_fallback", "ollama_enabled"):
        if key in cleaned:
            cleaned[key] = str(cleaned[key]).lower() in ENV_OVERRIDE_TRUE
    return cleaned


def _nest_env(env_data: Dict[str, Any]) -> Dict[str, Any]:
    """Fold flat env keys into the nested provider sections."""
    nested: Dict[str, Any] = {}
    sections = {
        "ollama": {"ollama_url": "url", "ollama_model": "model", "ollama_enabled": "enabled"},
        "gemini": {"gemini_api_key": "api_key", "gemini_model": "model"},
        "huggingface": {"hf_api_token": "api_token", "hf_model_url": "model_url"},
    }
    consumed = set()
    for section, mapping in sections.items():
        values = {field: env_data[key] for key, field in mapping.items() if key in env_data}
        consumed.update(mapping)
        if values:
            nested[section] = values
    for key, value in env_data.items():
        if key not in consumed:
            nested[key] = value
    return nested


def _env_overrides_config() -> bool:
    return str(os.getenv(ENV_OVERRIDE_KEY, "")).strip().lower() in ENV_OVERRIDE_TRUE


def _merge(low: Dict[str, Any], high: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(low)
    for key, value in high.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_settings(config_path: Optional[Path] = None) -> AppSettings:
    env_data = _nest_env(_load_from_env())
    path = config_path or CONFIG_PATH
    file_data: Dict[str, Any] = {}
    if path.exists():
        try:
            file_data = json.loads(path.read_text())
        except Exception:
            file_data = {}
    # Config wins by default; allow env overrides only when explicitly enabled.
    if _env_overrides_config():
        merged = _merge(file_data, env_data)
    else:
        merged = _merge(env_data, file_data)
    # Blank credentials in config.json fall back to the environment.
    for section, key in (("gemini", "api_key"), ("huggingface", "api_token")):
        env_secret = (env_data.get(section) or {}).get(key)
        current = merged.get(section) or {}
        if env_secret and not current.get(key):
            merged[section] = {**current, key: env_secret}
    return AppSettings(**merged)
