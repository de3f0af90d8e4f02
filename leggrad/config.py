import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server settings, read from LEGGRAD_* environment variables."""
    log_dir: str = "logs"
    max_rooms: int = 20
    default_variant: str = "classic"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            log_dir=os.getenv("LEGGRAD_LOG_DIR", "logs"),
            max_rooms=int(os.getenv("LEGGRAD_MAX_ROOMS", "20")),
            default_variant=os.getenv("LEGGRAD_DEFAULT_VARIANT", "classic").lower(),
            host=os.getenv("LEGGRAD_HOST", "0.0.0.0"),
            port=int(os.getenv("LEGGRAD_PORT", "8000")),
        )
