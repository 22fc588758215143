"""
Run the financial coaching REST API.

Usage:
    python run_api.py

Environment variables (all optional, see infrastructure/config.py for the full list):
    LLM_PROVIDER            "openai", "groq", or "ollama" (default: ollama)
    OPENAI_API_KEY          Required when LLM_PROVIDER=openai
    GROQ_API_KEY            Required when LLM_PROVIDER=groq
    DB_PATH                 SQLite database file path (default: coach.db)
    AGENT_TIMEOUT_S         Per-agent execution timeout (default: 60)
    HANDOFF_MAX_ESCALATION  Maximum chained handoffs per interaction (default: 5)
    API_HOST / API_PORT     Bind address (default: 0.0.0.0:8000)
"""

import os
import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "adapters.rest.app:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() in ("1", "true", "yes"),
    )
