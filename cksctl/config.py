"""Configuration management for cksctl.

Configuration is loaded with the following precedence:
1. Environment variables (and a local .env file)
2. An explicit configuration file passed with --config
3. The first existing default configuration file
4. Default values

Version strings are constants for a single run. They are only checked for
presence, plus a major.minor prefix on the Kubernetes version because the
package repository is derived from it.
"""
import os
import logging
import platform
from pathlib import Path
from typing import Dict, Any, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from cksctl.errors import ConfigurationError

# Load environment variables from .env file if it exists
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = [
    Path("/etc/cksctl/config.yaml"),
    Path("~/.config/cksctl/config.yaml").expanduser(),
    Path("cksctl.yaml").absolute(),
]

# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "K8S_VERSION": ("versions", "kubernetes"),
    "CALICO_VERSION": ("versions", "calico"),
    "CRICTL_VERSION": ("versions", "crictl"),
    "KUBE_BENCH_VERSION": ("versions", "kube_bench"),
    "ETCD_VERSION": ("versions", "etcd_fallback"),
    "POD_CIDR": ("versions", "pod_cidr"),
    "CKS_LOG_LEVEL": ("logging", "level"),
    "CKS_LOG_FILE": ("logging", "file"),
    "CKS_HOST_ROOT": (None, "host_root"),
    "CKS_ARCH": (None, "arch"),
}

_MACHINE_ARCH = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def detect_arch() -> str:
    """Map the host machine type to the architecture used in release names."""
    return _MACHINE_ARCH.get(platform.machine().lower(), "amd64")


class VersionConfig(BaseModel):
    """Versions of everything the cluster is built from."""
    kubernetes: str = Field(default="1.33.0", description="Kubernetes version (kubeadm/kubelet/kubectl)")
    calico: str = Field(default="v3.28.2", description="Calico manifest version")
    crictl: str = Field(default="v1.31.1", description="cri-tools release")
    kube_bench: str = Field(default="0.8.0", description="kube-bench release")
    etcd_fallback: str = Field(
        default="v3.5.15",
        description="etcdctl release used when the running etcd version cannot be detected",
    )
    pod_cidr: str = Field(default="192.168.0.0/16", description="Pod network CIDR passed to kubeadm")

    @field_validator("kubernetes", "calico", "crictl", "kube_bench", "etcd_fallback", "pod_cidr")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("kubernetes")
    @classmethod
    def has_minor(cls, v: str) -> str:
        parts = v.lstrip("v").split(".")
        if len(parts) < 2 or not all(p.isdigit() for p in parts[:2]):
            raise ValueError(f"expected a version like 1.33.0, got {v!r}")
        return v.lstrip("v")

    @property
    def kubernetes_minor(self) -> str:
        """Major.minor series, e.g. 'v1.33', used for the apt repository path."""
        major, minor = self.kubernetes.split(".")[:2]
        return f"v{major}.{minor}"

    @property
    def kubernetes_package(self) -> str:
        """Debian package version for the pinned Kubernetes packages."""
        return f"{self.kubernetes}-1.1"


class TimeoutConfig(BaseModel):
    """Polling intervals and readiness timeouts (seconds)."""
    poll_interval: float = 5
    existence_attempts: int = 60
    node_ready: int = 60
    calico_node: int = 600
    calico_controllers: int = 300
    kube_proxy: int = 120
    metrics_server: int = 300
    system_pods: int = 600
    post_init_settle: float = 10
    containerd_settle: float = 3
    reboot_delay: float = 5
    download: int = 60


class KubeletConfig(BaseModel):
    """Kubelet resource reservations for a small single node."""
    system_reserved: str = "cpu=200m,memory=512Mi"
    kube_reserved: str = "cpu=200m,memory=768Mi"
    eviction_hard: str = "memory.available<256Mi"
    max_pods: int = 50

    @property
    def extra_args(self) -> str:
        return (
            f"--system-reserved={self.system_reserved} "
            f"--kube-reserved={self.kube_reserved} "
            f"--eviction-hard={self.eviction_hard} "
            f"--max-pods={self.max_pods}"
        )


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    file: Optional[str] = Field(default=None, description="Path to log file (if None, console only)")
    max_size_mb: int = 10
    backup_count: int = 3


class Settings(BaseModel):
    """Top-level cksctl configuration."""
    versions: VersionConfig = Field(default_factory=VersionConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    kubelet: KubeletConfig = Field(default_factory=KubeletConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    host_root: Path = Field(default=Path("/"), description="Filesystem root that file edits are applied under")
    arch: str = Field(default_factory=detect_arch)
    admin_conf: str = "/etc/kubernetes/admin.conf"

    model_config = {"extra": "ignore"}

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None,
             environ: Optional[Dict[str, str]] = None) -> "Settings":
        """Load configuration from file and environment variables."""
        config_data: Dict[str, Any] = {}

        if config_path:
            config_path = Path(config_path).expanduser().absolute()
            if not config_path.exists():
                raise ConfigurationError(f"Config file not found: {config_path}")
            config_data = cls._load_config_file(config_path)
        else:
            for path in DEFAULT_CONFIG_PATHS:
                path = path.expanduser().absolute()
                if path.exists():
                    config_data = cls._load_config_file(path)
                    break

        config_data = apply_env_overrides(config_data, os.environ if environ is None else environ)

        try:
            return cls(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def _load_config_file(cls, path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid config format in {path}: expected mapping, got {type(data).__name__}")
        logger.debug(f"Loaded config from {path}")
        return data

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a file."""
        path = Path(path).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode="json", exclude_none=True), f,
                           default_flow_style=False, sort_keys=False)


def apply_env_overrides(data: Dict[str, Any], environ) -> Dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    result = dict(data)
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        if section is None:
            result[key] = value
        else:
            nested = dict(result.get(section) or {})
            nested[key] = value
            result[section] = nested
    return result


_settings: Optional[Settings] = None


def get_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load(config_path)
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set (or clear) the global settings instance."""
    global _settings
    _settings = settings
