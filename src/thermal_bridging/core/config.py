"""
Configuration management for thermal bridge processing.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Can be configured via environment variables (TBD_*) or .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TBD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Geometry
    tolerance: float = Field(default=0.01, gt=0, description="Vertex merge radius (m)")
    sub_tolerance: float = Field(
        default=0.01, ge=0, description="Minimum clearance between openings and host edges (m)"
    )

    # Coefficient libraries
    psi_set: str = Field(default="poor (BETBG)", description="Default PSI set name")
    khi_set: str = Field(default="poor (BETBG)", description="Default KHI set name")
    parapet: bool = Field(
        default=True, description="Tag wall/roof intersections as parapets (else roof edges)"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    log_to_file: bool = Field(default=False)
    log_dir: Path = Field(default=Path("logs"))


# Global settings instance
settings = Settings()
