from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()

class Settings(BaseModel):
    # Supabase
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # "supabase" | "memory"
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "supabase")
    SEED_RULES_PATH: str = os.getenv("SEED_RULES_PATH", "")

    # AI provider
    AI_PROVIDER: str = os.getenv("AI_PROVIDER", "openai")
    AI_API_KEY: str = (
        os.getenv("AI_API_KEY")
        or os.getenv("OPENAI_API_KEY")
        or os.getenv("ANTHROPIC_API_KEY")
        or ""
    )
    AI_MODEL: str = os.getenv("AI_MODEL", "")
    AI_MODEL_SIMPLE: str = os.getenv("AI_MODEL_SIMPLE", "")
    AI_MODEL_COMPLEX: str = os.getenv("AI_MODEL_COMPLEX", "")
    AI_MODEL_ULTRA: str = os.getenv("AI_MODEL_ULTRA", "")

    # LLM resilience
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "10"))
    LLM_MAX_ATTEMPTS: int = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))
    LLM_RETRY_BASE_DELAY: float = float(os.getenv("LLM_RETRY_BASE_DELAY", "0.5"))
    LLM_CONCURRENCY: int = int(os.getenv("LLM_CONCURRENCY", "5"))

    # Semantic cache
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))
    CACHE_SIMILARITY_THRESHOLD: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.85"))

    # Batch persistence
    GRANT_CHUNK_SIZE: int = int(os.getenv("GRANT_CHUNK_SIZE", "500"))

    def tier_overrides(self) -> dict:
        return {
            "simple": self.AI_MODEL_SIMPLE,
            "complex": self.AI_MODEL_COMPLEX,
            "ultra-complex": self.AI_MODEL_ULTRA,
        }

settings = Settings()
