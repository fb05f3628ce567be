import os, yaml
from llm_provider import ChatProvider, OllamaChatProvider, OpenAICompatibleProvider
from settings import settings


def _read_config(config_path: str) -> dict:
    if not config_path or not os.path.exists(config_path):
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_provider(config_path: str = "llm.yaml") -> ChatProvider:
    """Build the chat provider from llm.yaml, with environment variables taking precedence."""
    cfg = _read_config(config_path)

    kind = os.getenv("LLM_PROVIDER", cfg.get("provider", settings.LLM_PROVIDER)).lower()
    common = {
        "timeout": cfg.get("timeout_seconds"),
        "max_attempts": cfg.get("max_attempts"),
    }
    if kind == "ollama":
        return OllamaChatProvider(
            url=os.getenv("OLLAMA_API_URL", cfg.get("model_url", settings.OLLAMA_API_URL)),
            **common,
        )
    if kind in ("openai", "openai-compatible"):
        return OpenAICompatibleProvider(
            base_url=os.getenv("LLM_BASE_URL", cfg.get("base_url", settings.LLM_BASE_URL)),
            api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or cfg.get("api_key"),
            **common,
        )
    raise ValueError(f"Unknown provider: {kind}")


def analyst_model(config_path: str = "llm.yaml") -> str:
    cfg = _read_config(config_path)
    return os.getenv("ANALYST_MODEL", cfg.get("analyst_model", settings.ANALYST_MODEL))


def verifier_model(config_path: str = "llm.yaml") -> str:
    cfg = _read_config(config_path)
    return os.getenv("GUARDIAN_MODEL", cfg.get("guardian_model", settings.GUARDIAN_MODEL))
