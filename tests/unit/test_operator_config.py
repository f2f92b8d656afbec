from pathlib import Path

import pytest

from cdb_operator.config import load_config


def test_load_config(tmp_path: Path):
    config_path = tmp_path / "operator.yaml"
    config_path.write_text(
        """
ovh:
  endpoint: ovh-ca
  application_key: ak
  application_secret: as
  consumer_key: ck
  timeout: 12
kubernetes:
  kubeconfig: /etc/kube/config
  group: cloud.example.net
egress:
  probe_url: https://echo.example
  timeout: 4
reconciler:
  workers: 4
  resync_interval: 60
  max_backoff: 120
"""
    )

    cfg = load_config(config_path)

    assert cfg.ovh.endpoint == "ovh-ca"
    assert cfg.ovh.application_key == "ak"
    assert cfg.ovh.consumer_key == "ck"
    assert cfg.ovh.timeout == pytest.approx(12.0)
    assert cfg.kubernetes.kubeconfig == Path("/etc/kube/config")
    assert cfg.kubernetes.group == "cloud.example.net"
    assert cfg.kubernetes.version == "v1alpha1"
    assert cfg.kubernetes.plural == "databases"
    assert cfg.egress.probe_url == "https://echo.example"
    assert cfg.egress.timeout == pytest.approx(4.0)
    assert cfg.reconciler.workers == 4
    assert cfg.reconciler.resync_interval == pytest.approx(60.0)
    assert cfg.reconciler.base_backoff == pytest.approx(1.0)
    assert cfg.reconciler.max_backoff == pytest.approx(120.0)


def test_defaults(tmp_path: Path):
    config_path = tmp_path / "empty.yaml"
    config_path.write_text("")

    cfg = load_config(config_path)

    assert cfg.ovh.endpoint == "ovh-eu"
    assert cfg.ovh.application_key is None
    assert cfg.kubernetes.kubeconfig is None
    assert cfg.egress.probe_url == "https://ifconfig.io"
    assert cfg == load_config(None)


@pytest.mark.parametrize(
    "content",
    ["- not a mapping", "ovh: [1, 2]", "reconciler:\n  workers: 0"],
)
def test_invalid_config(tmp_path: Path, content):
    config_path = tmp_path / "bad.yaml"
    config_path.write_text(content)

    with pytest.raises(ValueError):
        load_config(config_path)
