"""
Run the financial coaching CLI.

Usage:
    python run_cli.py [COMMAND] [OPTIONS]

Commands:
    seed       Create a demo user with envelopes, transactions and goals
    ask        One-shot question (routed, or --agent to pick a specialist)
    chat       Interactive chat session
    agents     List the agent catalog
    tools      List the tool catalog
    history    Show a session transcript
    metrics    Show per-agent / per-tool call metrics

Examples:
    python run_cli.py seed --user demo
    python run_cli.py ask "Where did my money go this month?" --user demo
    python run_cli.py chat --user demo

Environment variables (all optional):
    LLM_PROVIDER        "openai", "groq", or "ollama"; selects the agents' chat model
    LLM_MODEL_OPENAI    Model name when LLM_PROVIDER=openai (default: gpt-4.1-mini)
    LLM_MODEL_GROQ      Model name when LLM_PROVIDER=groq (default: llama-3.3-70b-versatile)
    LLM_MODEL_OLLAMA    Model name when LLM_PROVIDER=ollama (default: llama3.2)
    OPENAI_API_KEY      Required when LLM_PROVIDER=openai
    GROQ_API_KEY        Required when LLM_PROVIDER=groq
    DB_PATH             SQLite database file path (default: coach.db)
    OLLAMA_BASE_URL     Ollama server URL (default: http://localhost:11434/)
    LOG_LEVEL           Logging level (default: INFO)
"""

import sys
from pathlib import Path

# Ensure src/ is importable
sys.path.insert(0, str(Path(__file__).parent / "src"))

from adapters.cli.main import app

if __name__ == "__main__":
    app()
