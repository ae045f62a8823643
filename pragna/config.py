"""
Application Settings

Centralised configuration for the consensus engine.
Values come from PRAGNA_* environment variables or the project-level .env file.
"""
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Paths ───────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ── Load .env ───────────────────────────────────────────────────────────
load_dotenv(PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    """Runtime settings for the diagnosis pipeline."""

    model_config = SettingsConfigDict(env_prefix="PRAGNA_", extra="ignore")

    # Version tag stamped on every report
    system_version: str = "PragnaAI-Agentic-v1.0"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_trace_steps: bool = True

    # Five-stage chain-of-thought explanation after consensus
    chain_of_thought: bool = True

    # Simulated processing latency (0 = no delay)
    simulated_latency_ms: float = 0.0
    init_latency_ms: float = 0.0


settings = Settings()
