"""
Configuration for kube-badge.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # Label shown in badges, e.g. "staging"
    env: str = ""

    # Kubernetes
    # In-cluster config unless debug is set; debug falls back to ~/.kube/config
    kubeconfig_path: Optional[str] = None

    # Pod phases counted as healthy
    healthy_pod_phases: List[str] = ["Running", "Succeeded"]

    # Graceful shutdown drain window
    shutdown_timeout_seconds: float = 10.0

    class Config:
        env_prefix = "APP_"
        env_file = ".env"
