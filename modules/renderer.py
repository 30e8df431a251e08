# -*- coding: utf-8 -*-
"""
渲染后端
RenderBackend 定义核心与渲染器之间的最小契约；
OpenCVPreviewRenderer 是一个参考实现：透视投影 + 加法混合的点精灵 + 背景星空 + 发光内核。
"""
import abc
from typing import Optional, Tuple

import cv2
import numpy as np

import config
from modules.particle_state import RenderSnapshot
from modules.shape_generator import background_stars


def rotation_matrix(angle_x: float, angle_y: float, angle_z: float) -> np.ndarray:
    """
    欧拉角 (XYZ 顺序) -> 3x3 旋转矩阵
    角度单位：弧度
    """
    cx, sx = np.cos(angle_x), np.sin(angle_x)
    cy, sy = np.cos(angle_y), np.sin(angle_y)
    cz, sz = np.cos(angle_z), np.sin(angle_z)
    rx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    ry = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    rz = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return rx @ ry @ rz


def rotate_3d(points: np.ndarray, angle_x: float, angle_y: float, angle_z: float) -> np.ndarray:
    """批量 3D 旋转 (N x 3)"""
    return points @ rotation_matrix(angle_x, angle_y, angle_z).T


def perspective_projection(points: np.ndarray, focal: float, distance: float,
                           near: float = 0.1) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    3D透视投影到2D屏幕（相机位于 +Z 轴 distance 处，看向原点）
    返回 (screen_x, screen_y, depth)
    """
    depth = distance - points[:, 2]
    # 防止除零；相机后方的点由调用方剔除
    safe_depth = np.maximum(depth, near)
    scale = focal / safe_depth
    return points[:, 0] * scale, points[:, 1] * scale, depth


class RenderBackend(abc.ABC):
    """渲染后端契约：颜色每次换形状上传一次，位置/变换/材质每帧读取"""

    def __init__(self) -> None:
        self._colors_version = -1

    @abc.abstractmethod
    def upload_colors(self, colors: np.ndarray) -> None:
        """颜色缓冲区（N x 3，0-1）"""

    @abc.abstractmethod
    def draw(self, snapshot: RenderSnapshot, frame: np.ndarray) -> np.ndarray:
        """绘制一帧（不得修改 snapshot 中的数组）"""

    def render(self, snapshot: RenderSnapshot, frame: np.ndarray) -> np.ndarray:
        if snapshot.colors_version != self._colors_version:
            self.upload_colors(snapshot.colors)
            self._colors_version = snapshot.colors_version
        return self.draw(snapshot, frame)


class OpenCVPreviewRenderer(RenderBackend):
    """基于 OpenCV 的预览渲染器（加法混合，近大远小）"""

    def __init__(
        self,
        width: int = config.PREVIEW_WIDTH,
        height: int = config.PREVIEW_HEIGHT,
        fov: float = config.PREVIEW_FOV,
        camera_distance: float = config.PREVIEW_CAMERA_DISTANCE,
        star_count: int = config.BACKGROUND_STAR_COUNT,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        super().__init__()
        self.width = width
        self.height = height
        self.camera_distance = camera_distance
        self.focal = (height / 2) / np.tan(np.radians(fov) / 2)
        self._colors_bgr = np.zeros((0, 3), dtype=np.float32)
        self._stars = background_stars(star_count, rng) if star_count > 0 else np.zeros((0, 3), np.float32)
        self.glow_sigma = 2.0
        self.glow_strength = 0.6

    def new_frame(self) -> np.ndarray:
        return np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def upload_colors(self, colors: np.ndarray) -> None:
        # RGB -> BGR
        self._colors_bgr = np.ascontiguousarray(colors[:, ::-1], dtype=np.float32)

    def _to_pixels(self, points: np.ndarray):
        sx, sy, depth = perspective_projection(points, self.focal, self.camera_distance)
        px = (self.width / 2 + sx).astype(np.int32)
        py = (self.height / 2 - sy).astype(np.int32)  # Y轴翻转
        visible = (depth > 0.1) & (px >= 0) & (px < self.width) & (py >= 0) & (py < self.height)
        return px, py, depth, visible

    def _draw_stars(self, accum: np.ndarray) -> None:
        if len(self._stars) == 0:
            return
        px, py, _, visible = self._to_pixels(self._stars)
        # 暗灰色 (0x88) * 0.6 透明度
        np.add.at(accum, (py[visible], px[visible]), 0.53 * 0.6)

    def _draw_particles(self, snapshot: RenderSnapshot, accum: np.ndarray) -> None:
        t = snapshot.transform
        world = rotate_3d(snapshot.positions * t.scale, *t.rotation) + np.asarray(t.position)
        px, py, depth, visible = self._to_pixels(world)
        if not visible.any():
            return

        # 景深：远的粒子更暗
        depth_factor = np.clip(self.camera_distance / np.maximum(depth[visible], 1.0), 0.3, 1.5)
        tint_bgr = np.asarray(snapshot.tint[::-1], dtype=np.float32)
        colors = self._colors_bgr[visible] * tint_bgr * depth_factor[:, None].astype(np.float32)
        np.add.at(accum, (py[visible], px[visible]), colors * 0.5)

    def _draw_core(self, snapshot: RenderSnapshot, frame: np.ndarray) -> None:
        if snapshot.core_scale < 0.01:
            return
        center = np.asarray([snapshot.core_position], dtype=np.float64)
        px, py, depth, visible = self._to_pixels(center)
        if not visible[0]:
            return
        radius = int(config.CORE_RADIUS * snapshot.core_scale * self.focal / depth[0])
        if radius < 1:
            return
        overlay = frame.copy()
        cv2.circle(overlay, (int(px[0]), int(py[0])), radius, config.CORE_COLOR, -1, lineType=cv2.LINE_AA)
        cv2.addWeighted(overlay, config.CORE_OPACITY, frame, 1 - config.CORE_OPACITY, 0, frame)

    def draw(self, snapshot: RenderSnapshot, frame: np.ndarray) -> np.ndarray:
        accum = np.zeros((self.height, self.width, 3), dtype=np.float32)
        self._draw_stars(accum)
        self._draw_particles(snapshot, accum)

        # 粒子大小：膨胀；发光：高斯模糊叠加
        size = max(1, int(round(snapshot.point_size)))
        if size > 1:
            accum = cv2.dilate(accum, np.ones((size, size), np.uint8))
        glow = cv2.GaussianBlur(accum, (0, 0), self.glow_sigma)
        accum = accum + glow * self.glow_strength

        self._draw_core(snapshot, frame)
        blended = frame.astype(np.float32) + accum * 255.0
        np.clip(blended, 0, 255, out=blended)
        frame[:] = blended.astype(np.uint8)
        return frame
