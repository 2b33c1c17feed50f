# backend/gymchat/core/config.py
import os
from typing import Literal

from dotenv import load_dotenv


class Settings:
    """
    Setup environment variables.
        - PUB_SUB_SERVICE how broadcasts reach connections: "memory" (single process) or "redis"
        - STORE_BACKEND where messages and announcements are kept: "memory" or "redis"
        - JWT_SECRET / JWT_ALGORITHM used to verify tokens issued by the auth service
        - CORS_ORIGINS comma separated list of allowed origins ("*" for all)

    Individual values can be overridden per instance, e.g. ``Settings(JWT_SECRET="x")``.
    """

    # Load environment variables from the .env file
    load_dotenv()

    PUB_SUB_SERVICE: Literal["memory", "redis"] = os.getenv("PUB_SUB_SERVICE", "memory")
    STORE_BACKEND: Literal["memory", "redis"] = os.getenv("STORE_BACKEND", "memory")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Optional JSON fixture of gym rosters for the in-memory directory
    AFFILIATIONS_FILE: str = os.getenv("AFFILIATIONS_FILE", "")

    def __init__(self, **overrides) -> None:
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @property
    def redis_url(self) -> str:
        scheme = "rediss" if self.REDIS_SSL else "redis"
        auth = f":{self.REDIS_ACCESS_KEY}@" if self.REDIS_ACCESS_KEY else ""
        return f"{scheme}://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
