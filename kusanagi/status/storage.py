"""PersistentVolumeClaim capacity and usage."""

from __future__ import annotations

import re
from typing import Any

from kusanagi.models.snapshots import PvcInfo, StorageStatus
from kusanagi.status.fields import UNKNOWN, get_list, get_map, get_str, get_str_or

_BINARY_SUFFIXES = {
    "Ki": 1024,
    "Mi": 1024**2,
    "Gi": 1024**3,
    "Ti": 1024**4,
    "Pi": 1024**5,
}
_DECIMAL_SUFFIXES = {
    "k": 1000,
    "M": 1000**2,
    "G": 1000**3,
    "T": 1000**4,
}

_VOLUME_USED_METRIC = "kubelet_volume_stats_used_bytes"
_LABEL_RE = re.compile(r'(\w+)="((?:[^"\\]|\\.)*)"')

# (namespace, pvc name) -> used bytes
VolumeUsage = dict[tuple[str, str], int]


def parse_capacity(quantity: str) -> int:
    """Convert a Kubernetes quantity (``10Gi``, ``500M``, ``1073741824``) to bytes.

    Unparseable quantities yield 0.
    """
    text = quantity.strip()
    for suffixes in (_BINARY_SUFFIXES, _DECIMAL_SUFFIXES):
        for suffix, factor in suffixes.items():
            if text.endswith(suffix):
                try:
                    return int(float(text[: -len(suffix)]) * factor)
                except ValueError:
                    return 0
    try:
        return int(float(text))
    except ValueError:
        return 0


def parse_volume_usage(metrics_text: str) -> VolumeUsage:
    """Extract ``kubelet_volume_stats_used_bytes`` samples from kubelet metrics text."""
    usage: VolumeUsage = {}
    for line in metrics_text.splitlines():
        if not line.startswith(_VOLUME_USED_METRIC + "{"):
            continue
        labels_end = line.rfind("}")
        if labels_end == -1:
            continue
        labels = dict(_LABEL_RE.findall(line[len(_VOLUME_USED_METRIC) + 1 : labels_end]))
        namespace = labels.get("namespace", "")
        pvc = labels.get("persistentvolumeclaim", "")
        if not namespace or not pvc:
            continue
        sample = line[labels_end + 1 :].split()
        if not sample:
            continue
        try:
            usage[(namespace, pvc)] = int(float(sample[0]))
        except ValueError:
            continue
    return usage


def build_storage_status(pvcs: list[dict[str, Any]], usage: VolumeUsage | None = None) -> StorageStatus:
    usage = usage or {}
    infos: list[PvcInfo] = []
    total_capacity = 0
    total_used = 0

    for pvc in pvcs:
        name = get_str_or(pvc, "metadata.name", "")
        namespace = get_str_or(pvc, "metadata.namespace", "")
        capacity = get_map(pvc, "status.capacity").get("storage", "0")
        capacity_bytes = parse_capacity(capacity)
        used_bytes = usage.get((namespace, name))

        usage_percent: float | None = None
        if used_bytes is not None:
            usage_percent = (used_bytes / capacity_bytes) * 100.0 if capacity_bytes > 0 else 0.0
            total_used += used_bytes
        total_capacity += capacity_bytes

        infos.append(
            PvcInfo(
                name=name,
                namespace=namespace,
                status=get_str_or(pvc, "status.phase", UNKNOWN),
                capacity=capacity,
                capacity_bytes=capacity_bytes,
                used_bytes=used_bytes,
                usage_percent=usage_percent,
                storage_class=get_str(pvc, "spec.storageClassName") or "",
                access_modes=[str(m) for m in get_list(pvc, "spec.accessModes")],
                volume_name=get_str(pvc, "spec.volumeName") or "",
            )
        )

    return StorageStatus(
        pvc_count=len(infos),
        pvc_total_capacity_bytes=total_capacity,
        pvc_total_usage_bytes=total_used,
        pvcs=infos,
    )
