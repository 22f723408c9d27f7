"""
taskgroup_core/container.py
────────────────────────────
Container runtime compiler: volumes and image of one container.

Volume mounts are resolved against the pod's volumes by name (first match).
A mount naming a volume the pod does not declare is dropped; rejecting such
pods is pod_orchestrator.control_plane.pod_validator's job.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from pod_orchestrator.shared.models import (
    AppcImage,
    ContainerInfo,
    ContainerType,
    DockerImage,
    Image,
    ImageInfo,
    ImageKind,
    ImageType,
    Label,
    MesosContainer,
    Volume,
    VolumeInfo,
    VolumeMode,
)

# AppC images only run when os/arch labels are present. Every supported
# agent is 64-bit linux, so these are fixed rather than read from the offer.
APPC_PLATFORM_LABELS = (
    Label(key="os", value="linux"),
    Label(key="arch", value="amd64"),
)


def compute_volumes(pod_volumes: Sequence[Volume], container: MesosContainer) -> List[VolumeInfo]:
    volumes: List[VolumeInfo] = []
    for mount in container.volume_mounts:
        volume = next((v for v in pod_volumes if v.name == mount.name), None)
        if volume is None:
            continue
        volumes.append(VolumeInfo(
            container_path=mount.mount_path,
            host_path=volume.host,
            mode=VolumeMode.RO if mount.read_only else VolumeMode.RW,
        ))
    return volumes


def compute_image(image: Image) -> ImageInfo:
    cached: Optional[bool] = None if image.force_pull is None else not image.force_pull

    if image.kind == ImageKind.APPC:
        return ImageInfo(
            type=ImageType.APPC,
            appc=AppcImage(name=image.id, labels=list(APPC_PLATFORM_LABELS)),
            cached=cached,
        )
    return ImageInfo(
        type=ImageType.DOCKER,
        docker=DockerImage(name=image.id),
        cached=cached,
    )


def compute_container_info(pod_volumes: Sequence[Volume], container: MesosContainer) -> ContainerInfo:
    return ContainerInfo(
        type=ContainerType.MESOS,
        volumes=compute_volumes(pod_volumes, container),
        image=compute_image(container.image) if container.image is not None else None,
    )
