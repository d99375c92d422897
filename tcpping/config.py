import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_PORTS = [443, 80, 22]  # HTTPS, HTTP, SSH

REQUIRED_ENV_VARS = ["INTERNAL_API_KEY"]


class ProbeConfig(BaseModel):
    """
    Parameters for one latency measurement.
    Built once per invocation and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    ports: List[int] = Field(default_factory=lambda: list(DEFAULT_PORTS), min_length=1)
    attempts: int = Field(3, ge=1, le=20)
    timeout_ms: int = Field(2000, gt=0, le=60000)
    delay_ms: int = Field(100, ge=0, le=10000)

    @field_validator('ports')
    @classmethod
    def validate_ports(cls, v):
        # Try order matters, so dedupe without sorting
        valid = []
        for p in v:
            if 1 <= p <= 65535 and p not in valid:
                valid.append(p)
        if not valid:
            raise ValueError("No valid ports found in range 1-65535")
        return valid

    @property
    def primary_port(self) -> int:
        return self.ports[0]


class Settings(BaseModel):
    """
    Process-wide configuration read once from the environment at startup.
    Frozen: the signing secret is injected, never mutated.
    """
    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1, repr=False)
    port: int = Field(8080, ge=1, le=65535)
    env: str = "development"

    # Grafana Cloud / Pushgateway
    push_url: Optional[str] = None
    push_username: Optional[str] = None
    push_api_key: Optional[str] = Field(None, repr=False)
    push_interval_ms: int = Field(15000, gt=0)
    job_name: str = "tcpping"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def push_enabled(self) -> bool:
        return bool(self.push_url and self.push_username and self.push_api_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ

        missing = missing_required_env(environ)
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}", missing)

        try:
            return cls(
                api_key=environ["INTERNAL_API_KEY"],
                port=environ.get("PORT") or 8080,
                env=environ.get("NODE_ENV") or "development",
                push_url=environ.get("GRAFANA_CLOUD_URL") or environ.get("PROMETHEUS_PUSH_URL"),
                push_username=environ.get("GRAFANA_CLOUD_USERNAME"),
                push_api_key=environ.get("GRAFANA_CLOUD_API_KEY"),
                push_interval_ms=environ.get("METRICS_PUSH_INTERVAL") or 15000,
                job_name=environ.get("METRICS_JOB_NAME") or "tcpping",
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def missing_required_env(environ: Mapping[str, str]) -> List[str]:
    return [name for name in REQUIRED_ENV_VARS if not environ.get(name)]
