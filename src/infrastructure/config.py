"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from the environment or
passed explicitly (tests build it directly with a temporary DB path).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the coaching runtime.

    No module-level globals. Construct via from_env() or pass explicitly
    in tests.
    """
    project_root: Path = Path(".")

    # ── Centralized LLM Provider ────────────────────────────────
    # Allowed: "openai", "groq", "ollama"
    llm_provider: str = "ollama"

    # Model names. Only the one matching llm_provider is used.
    llm_model_ollama: str = "llama3.2"
    llm_model_openai: str = "gpt-4.1-mini"
    llm_model_groq: str = "llama-3.3-70b-versatile"

    # Connection details
    ollama_base_url: str = "http://localhost:11434/"
    groq_api_key: str = ""
    openai_api_key: str = ""

    # Agent execution
    agent_max_iterations: int = 5
    agent_timeout_s: float = 60.0
    tool_timeout_s: float = 30.0
    tool_history_size: int = 100
    lifecycle_sweep_interval_s: float = 30.0

    # Database
    db_path: str = "coach.db"
    persistence_timeout_s: float = 10.0

    # Context cache
    context_cache_max_entries: int = 1000
    context_cache_ttl_s: float = 3600.0
    context_sweep_interval_s: float = 300.0
    context_history_limit: int = 20

    # Routing & handoffs
    default_agent: str = "financial_advisor"
    escalation_agent: str = "financial_advisor"
    routing_confidence_threshold: float = 0.8
    handoff_max_escalation: int = 5
    handoff_carry_turns: int = 10
    handoff_history_per_user: int = 50

    # Memory
    memory_max_insights: int = 100
    memory_profile_insights: int = 20
    record_routing_insights: bool = True

    log_level: str = "INFO"

    @property
    def active_llm_model(self) -> str:
        """Return the model name for the currently active LLM provider."""
        if self.llm_provider == "openai":
            return self.llm_model_openai
        elif self.llm_provider == "groq":
            return self.llm_model_groq
        return self.llm_model_ollama

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> Settings:
        """Build Settings from environment variables (and a .env file)."""
        from dotenv import load_dotenv
        load_dotenv()

        root = project_root or Path(__file__).resolve().parent.parent.parent

        return cls(
            project_root=root,

            llm_provider=os.getenv("LLM_PROVIDER", "ollama"),
            llm_model_ollama=os.getenv("LLM_MODEL_OLLAMA", "llama3.2"),
            llm_model_openai=os.getenv("LLM_MODEL_OPENAI", "gpt-4.1-mini"),
            llm_model_groq=os.getenv("LLM_MODEL_GROQ", "llama-3.3-70b-versatile"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/"),
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),

            agent_max_iterations=int(os.getenv("AGENT_MAX_ITERATIONS", "5")),
            agent_timeout_s=float(os.getenv("AGENT_TIMEOUT_S", "60")),
            tool_timeout_s=float(os.getenv("TOOL_TIMEOUT_S", "30")),
            tool_history_size=int(os.getenv("TOOL_HISTORY_SIZE", "100")),
            lifecycle_sweep_interval_s=float(os.getenv("LIFECYCLE_SWEEP_INTERVAL_S", "30")),

            db_path=os.getenv("DB_PATH", str(root / "coach.db")),
            persistence_timeout_s=float(os.getenv("PERSISTENCE_TIMEOUT_S", "10")),

            context_cache_max_entries=int(os.getenv("CONTEXT_CACHE_MAX_ENTRIES", "1000")),
            context_cache_ttl_s=float(os.getenv("CONTEXT_CACHE_TTL_S", "3600")),
            context_sweep_interval_s=float(os.getenv("CONTEXT_SWEEP_INTERVAL_S", "300")),
            context_history_limit=int(os.getenv("CONTEXT_HISTORY_LIMIT", "20")),

            default_agent=os.getenv("DEFAULT_AGENT", "financial_advisor"),
            escalation_agent=os.getenv("ESCALATION_AGENT", "financial_advisor"),
            routing_confidence_threshold=float(os.getenv("ROUTING_CONFIDENCE_THRESHOLD", "0.8")),
            handoff_max_escalation=int(os.getenv("HANDOFF_MAX_ESCALATION", "5")),
            handoff_carry_turns=int(os.getenv("HANDOFF_CARRY_TURNS", "10")),
            handoff_history_per_user=int(os.getenv("HANDOFF_HISTORY_PER_USER", "50")),

            memory_max_insights=int(os.getenv("MEMORY_MAX_INSIGHTS", "100")),
            memory_profile_insights=int(os.getenv("MEMORY_PROFILE_INSIGHTS", "20")),
            record_routing_insights=os.getenv("RECORD_ROUTING_INSIGHTS", "true").lower()
            in ("1", "true", "yes"),

            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
