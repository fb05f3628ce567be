"""
Centralized settings module for ContractGuard.
Single source of truth for all configuration values.
"""

import os
from typing import List, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class ContractGuardSettings:
    """Centralized configuration for the ContractGuard pipeline."""

    # LLM backend
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "ollama")
    OLLAMA_API_URL: str = os.getenv("OLLAMA_API_URL", "http://localhost:11434")
    LLM_BASE_URL: str = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
    LLM_API_KEY: Optional[str] = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))

    # Rate-limit handling (HTTP 429 only)
    LLM_MAX_ATTEMPTS: int = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))
    LLM_RATE_LIMIT_DEFAULT_WAIT: float = float(os.getenv("LLM_RATE_LIMIT_DEFAULT_WAIT", "5"))
    LLM_RATE_LIMIT_BUFFER: float = float(os.getenv("LLM_RATE_LIMIT_BUFFER", "1"))

    # Stage 1: analyst
    ANALYST_MODEL: str = os.getenv("ANALYST_MODEL", "granite3.1-dense:8b")
    ANALYST_TEMPERATURE: float = float(os.getenv("ANALYST_TEMPERATURE", "0.1"))

    # Stage 2: verifier / guardian
    GUARDIAN_MODEL: str = os.getenv("GUARDIAN_MODEL", "ibm/granite3.3-guardian:8b")
    VERIFIER_TEMPERATURE: float = float(os.getenv("VERIFIER_TEMPERATURE", "0.0"))
    VERIFIER_RESPONSE_FORMAT: str = os.getenv("VERIFIER_RESPONSE_FORMAT", "tagged")  # tagged | keyword
    CG_VERIFIER_MAX_WORKERS: int = int(os.getenv("CG_VERIFIER_MAX_WORKERS", "1"))

    # Analysis history (external persistence collaborator)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./contractguard.db")
    HISTORY_ENABLED: bool = _env_bool("HISTORY_ENABLED", "true")
    HISTORY_MAX_ENTRIES: int = int(os.getenv("HISTORY_MAX_ENTRIES", "50"))

    # Custom policy templates (YAML), merged over the built-ins
    POLICY_TEMPLATES_FILE: Optional[str] = os.getenv("POLICY_TEMPLATES_FILE") or None

    # API Configuration
    API_ENABLE_TIMING_LOGS: bool = _env_bool("API_ENABLE_TIMING_LOGS", "true")
    CORS_ORIGINS: List[str] = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
        if o.strip()
    ]

    def get_verifier_workers(self, override: Optional[int] = None) -> int:
        """
        Number of concurrent verifier calls for one analysis.

        Args:
            override: Per-request override. If None, uses default setting.

        Returns:
            int: Worker count, never below 1
        """
        workers = override if override is not None else self.CG_VERIFIER_MAX_WORKERS
        return max(1, int(workers))

    def get_history_enabled(self, override: Optional[bool] = None) -> bool:
        if override is not None:
            return override
        return self.HISTORY_ENABLED


# Create singleton instance
settings = ContractGuardSettings()
