"""Camera metadata for 3D Gaussian Splat PLY captures."""

from splatcam.utils.camera import (
    CameraIntrinsics,
    PlyCamera,
    load_ply_camera,
    read_ply_camera,
)

__all__ = ["CameraIntrinsics", "PlyCamera", "load_ply_camera", "read_ply_camera"]
