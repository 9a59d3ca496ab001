"""
Codec configuration management
"""
from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Codec settings"""

    # Wire limits
    max_control_line: int = 4096
    max_payload: int = 64 * 1024 * 1024
    max_header_size: int = 64 * 1024

    # Reject extra tokens after PING/PONG/+OK and bytes after a frame
    strict: bool = True

    # Paths
    project_root: Path = Path(__file__).parent.parent
    log_dir: Path = project_root / "logs"
    log_level: str = "INFO"
    log_max_bytes: int = 5 * 1024 * 1024
    log_backup_count: int = 5

    @field_validator("max_control_line", "max_payload", "max_header_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("limit must be positive")
        return value

    class Config:
        env_prefix = "NATSWIRE_"
        env_file = ".env"


settings = Settings()
