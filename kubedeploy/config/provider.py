"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import List, Optional, Protocol


@dataclass
class APIConfig:
    """API configuration."""
    port: int
    host: str
    debug: bool
    log_level: str
    cors_origins: List[str]


@dataclass
class KubernetesConfig:
    """Kubernetes client configuration."""
    kubeconfig: Optional[str]
    context: Optional[str]
    in_cluster: bool
    request_timeout: int


@dataclass
class StreamConfig:
    """Watch stream configuration."""
    watch_timeout_seconds: int
    max_stream_seconds: int
    ping_seconds: int

    @property
    def stream_deadline(self) -> Optional[float]:
        """Maximum stream duration in seconds, or None when unlimited."""
        return float(self.max_stream_seconds) if self.max_stream_seconds > 0 else None


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...

    def get_kubernetes_config(self) -> KubernetesConfig:
        """Get Kubernetes client configuration."""
        ...

    def get_stream_config(self) -> StreamConfig:
        """Get watch stream configuration."""
        ...


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        return APIConfig(
            port=_int_env("API_PORT", "8080"),
            host=os.getenv("API_HOST", "0.0.0.0"),
            debug=_bool_env("API_DEBUG"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
        )

    def get_kubernetes_config(self) -> KubernetesConfig:
        """Get Kubernetes client configuration from environment variables."""
        # Inside a pod the service account token is mounted; default to it there
        in_cluster_default = "true" if os.getenv("KUBERNETES_SERVICE_HOST") else "false"
        return KubernetesConfig(
            kubeconfig=os.getenv("KUBECONFIG") or None,
            context=os.getenv("KUBE_CONTEXT") or None,
            in_cluster=_bool_env("KUBE_IN_CLUSTER", in_cluster_default),
            request_timeout=_int_env("KUBE_REQUEST_TIMEOUT", "30"),
        )

    def get_stream_config(self) -> StreamConfig:
        """Get watch stream configuration from environment variables."""
        return StreamConfig(
            watch_timeout_seconds=_int_env("WATCH_TIMEOUT_SECONDS", "1800"),
            max_stream_seconds=_int_env("MAX_STREAM_SECONDS", "0"),
            ping_seconds=_int_env("SSE_PING_SECONDS", "15"),
        )
