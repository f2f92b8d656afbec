"""YAML configuration loader for the allowlist operator."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from cdb_allowlist.gateway import DEFAULT_PROBE_URL


@dataclass
class OvhConfig:
    endpoint: str = "ovh-eu"
    application_key: Optional[str] = None
    application_secret: Optional[str] = None
    consumer_key: Optional[str] = None
    timeout: float = 30.0


@dataclass
class KubernetesConfig:
    kubeconfig: Optional[Path] = None
    group: str = "cloud.ovh.net"
    version: str = "v1alpha1"
    plural: str = "databases"
    timeout: float = 30.0


@dataclass
class EgressConfig:
    probe_url: str = DEFAULT_PROBE_URL
    timeout: float = 10.0


@dataclass
class ReconcilerConfig:
    workers: int = 2
    resync_interval: float = 300.0
    base_backoff: float = 1.0
    max_backoff: float = 300.0


@dataclass
class OperatorConfig:
    ovh: OvhConfig = field(default_factory=OvhConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    egress: EgressConfig = field(default_factory=EgressConfig)
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _parse_ovh(section: Dict[str, Any]) -> OvhConfig:
    return OvhConfig(
        endpoint=str(section.get("endpoint", "ovh-eu")),
        application_key=_optional_str(section.get("application_key")),
        application_secret=_optional_str(section.get("application_secret")),
        consumer_key=_optional_str(section.get("consumer_key")),
        timeout=float(section.get("timeout", 30.0)),
    )


def _parse_kubernetes(section: Dict[str, Any]) -> KubernetesConfig:
    kubeconfig = section.get("kubeconfig")
    return KubernetesConfig(
        kubeconfig=Path(kubeconfig) if kubeconfig else None,
        group=str(section.get("group", "cloud.ovh.net")),
        version=str(section.get("version", "v1alpha1")),
        plural=str(section.get("plural", "databases")),
        timeout=float(section.get("timeout", 30.0)),
    )


def _parse_egress(section: Dict[str, Any]) -> EgressConfig:
    return EgressConfig(
        probe_url=str(section.get("probe_url", DEFAULT_PROBE_URL)),
        timeout=float(section.get("timeout", 10.0)),
    )


def _parse_reconciler(section: Dict[str, Any]) -> ReconcilerConfig:
    workers = int(section.get("workers", 2))
    if workers < 1:
        raise ValueError("'reconciler.workers' must be at least 1")
    return ReconcilerConfig(
        workers=workers,
        resync_interval=float(section.get("resync_interval", 300.0)),
        base_backoff=float(section.get("base_backoff", 1.0)),
        max_backoff=float(section.get("max_backoff", 300.0)),
    )


def load_config(path: Optional[Path]) -> OperatorConfig:
    """Load ``path``; a missing file name yields the defaults."""

    if path is None:
        return OperatorConfig()

    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Operator configuration must be a mapping")

    return OperatorConfig(
        ovh=_parse_ovh(_section(data, "ovh")),
        kubernetes=_parse_kubernetes(_section(data, "kubernetes")),
        egress=_parse_egress(_section(data, "egress")),
        reconciler=_parse_reconciler(_section(data, "reconciler")),
    )
