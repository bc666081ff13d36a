"""Application configuration settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    """Configuration for the OnTarget EHR service."""

    # FHIR server
    fhir_base_url: str = "https://hapi.fhir.org/baseR4"
    timeout: float = 30.0

    # Owning organization, used to scope patient searches and stamp
    # performer/author references on created resources
    organization_id: str = "53655767"
    organization_name: str = "Demo General Hospital"
    department_name: str = "Cardiology Department"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS settings
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def department_display(self) -> str:
        return f"{self.organization_name} - {self.department_name}"

    @classmethod
    def from_env(cls) -> Settings:
        """Load configuration from environment variables."""
        return cls(
            fhir_base_url=os.getenv("ONTARGET_FHIR_BASE_URL", "https://hapi.fhir.org/baseR4"),
            timeout=float(os.getenv("ONTARGET_TIMEOUT", "30")),
            organization_id=os.getenv("ONTARGET_ORGANIZATION_ID", "53655767"),
            organization_name=os.getenv("ONTARGET_ORGANIZATION_NAME", "Demo General Hospital"),
            department_name=os.getenv("ONTARGET_DEPARTMENT_NAME", "Cardiology Department"),
            host=os.getenv("ONTARGET_HOST", "0.0.0.0"),
            port=int(os.getenv("ONTARGET_PORT", "8000")),
            debug=os.getenv("ONTARGET_DEBUG", "").lower() in ("true", "1", "yes"),
            cors_origins=os.getenv("ONTARGET_CORS_ORIGINS", "*").split(","),
        )


# Global config instance
_config: Settings | None = None


def get_config() -> Settings:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Settings.from_env()
    return _config
