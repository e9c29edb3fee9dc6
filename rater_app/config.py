"""Configuration helpers for the Outfit Rater app."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_RATING_ENDPOINT = "http://localhost:8080/api/rate-outfit"


@dataclass
class RaterConfig:
    """Configuration values for the rater app.

    Secrets such as the Gemini and Supabase keys are expected to come from the
    runtime environment; everything else has a local default so the app can run
    offline against SQLite.
    """

    rating_endpoint_url: str = DEFAULT_RATING_ENDPOINT
    model: str = DEFAULT_GEMINI_MODEL
    google_api_key: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    rating_store_backend: str = "sqlite"
    rating_db_path: Optional[str] = None
    pending_queue_backend: str = "json"
    pending_queue_path: Optional[str] = None
    max_image_width: int = 1024
    image_quality: float = 0.85
    request_timeout_seconds: float = 45.0
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "RaterConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables, which take precedence.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("RATER_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        return cls(
            rating_endpoint_url=str(get_value("rating_endpoint_url") or DEFAULT_RATING_ENDPOINT),
            model=str(get_value("model") or DEFAULT_GEMINI_MODEL),
            google_api_key=get_value("google_api_key"),
            supabase_url=get_value("supabase_url"),
            supabase_anon_key=get_value("supabase_anon_key"),
            rating_store_backend=str(get_value("rating_store_backend", "sqlite")),
            rating_db_path=get_value("rating_db_path"),
            pending_queue_backend=str(get_value("pending_queue_backend", "json")),
            pending_queue_path=get_value("pending_queue_path"),
            max_image_width=int(get_value("max_image_width") or 1024),
            image_quality=float(get_value("image_quality") or 0.85),
            request_timeout_seconds=float(get_value("request_timeout_seconds") or 45.0),
            retry_attempts=int(get_value("retry_attempts") or 3),
            retry_base_delay=float(get_value("retry_base_delay") or 1.0),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a flat ``key: value`` YAML file."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
