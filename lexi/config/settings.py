"""
Lexi - Centralized Configuration
=================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr``.  It is optional at startup
  so that the storage-only operations (listing, removal) keep working
  without model access; the embedding and completion gateways raise
  ``ServiceUnavailable`` the moment they are used without it.
- ``MONGO_URI`` is also ``SecretStr`` and has **no default value**:
  connection strings contain credentials and must never leak into logs.

Retrieval Tuning
----------------
``CHUNK_SIZE`` / ``CHUNK_OVERLAP`` drive the chunker, ``RETRIEVAL_TOP_K``
bounds the evidence handed to the model, and ``HISTORY_WINDOW`` bounds
how many trailing conversation turns are replayed into the prompt.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**: the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr | None
        API key for Google AI Studio (Gemini).  Access the raw value with
        ``settings.GOOGLE_API_KEY.get_secret_value()``.
    MONGO_URI : SecretStr
        MongoDB connection string (e.g. ``mongodb://localhost:27017``).
        **Required.**  Contains credentials: never log raw value.
    MONGO_DB_NAME : str
        MongoDB database name for documents, sessions and messages.
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    CHUNK_SIZE : int
        Maximum character count per text chunk during ingestion.
    CHUNK_OVERLAP : int
        Characters shared between consecutive chunks.
    EMBEDDING_MODEL : str
        Model identifier passed to ``GoogleGenerativeAIEmbeddings``.
    LLM_MODEL : str
        Model identifier for the answer-generation LLM.
    LLM_TEMPERATURE : float
        Sampling temperature for answers (low favours faithfulness).
    LLM_MAX_OUTPUT_TOKENS : int
        Output-length ceiling for a single answer.
    RETRIEVAL_TOP_K : int
        Number of chunks retrieved per question.
    HISTORY_WINDOW : int
        Trailing conversation turns replayed into the prompt.
    SOURCE_EXCERPT_CHARS : int
        Length of the excerpt returned for every cited chunk.
    ASSISTANT_DOMAIN : str
        Subject area the assistant is restricted to.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys ───────────────────────────────────────────────────────
    GOOGLE_API_KEY: SecretStr | None = None

    # ── MongoDB (REQUIRED, no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "lexi"

    # ── Ingestion Parameters ───────────────────────────────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "gemini-embedding-001"
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.3
    LLM_MAX_OUTPUT_TOKENS: int = 500

    # ── Retrieval & Answering ──────────────────────────────────────────
    RETRIEVAL_TOP_K: int = 3
    HISTORY_WINDOW: int = 6
    SOURCE_EXCERPT_CHARS: int = 200
    ASSISTANT_DOMAIN: str = "legal documents related to real estate and renting"

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"CHUNK_SIZE must be ≥ 50, got {v}")
        return v


    @field_validator("LLM_TEMPERATURE")
    @classmethod
    def _temperature_range(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"LLM_TEMPERATURE must be 0.0–2.0, got {v}")
        return v


    @field_validator("LLM_MAX_OUTPUT_TOKENS", "RETRIEVAL_TOP_K", "SOURCE_EXCERPT_CHARS")
    @classmethod
    def _strictly_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("HISTORY_WINDOW")
    @classmethod
    def _history_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"HISTORY_WINDOW must be ≥ 0, got {v}")
        return v


    @model_validator(mode="after")
    def _overlap_below_size(self) -> "Settings":
        if not 0 <= self.CHUNK_OVERLAP < self.CHUNK_SIZE:
            raise ValueError(f"CHUNK_OVERLAP must satisfy 0 ≤ overlap < CHUNK_SIZE ({self.CHUNK_SIZE}), got {self.CHUNK_OVERLAP}")
        return self

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from lexi.config.settings import settings
settings = Settings()
