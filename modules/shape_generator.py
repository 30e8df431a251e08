"""
3D粒子模板库
每个模板是无状态的策略对象：给定粒子数量与随机源，生成位置和基础颜色。
所有计算均为 numpy 向量化，35000 个粒子也能在一帧内生成完毕。
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

import config
from core.errors import UnknownTemplate

logger = logging.getLogger(__name__)


class Template(str, Enum):
    GALAXY = "galaxy"
    SPIRAL = "spiral"
    BARRED = "barred"
    SPHERE = "sphere"
    HEART = "heart"
    FLOWER = "flower"
    SATURN = "saturn"
    EARTH = "earth"
    BUDDHA = "buddha"
    FIREWORKS = "fireworks"


@dataclass(frozen=True)
class ParticleShape:
    """生成结果：基础位置、基础颜色、压缩球位置（均为 N x 3 float32）"""
    template: Template
    positions: np.ndarray
    colors: np.ndarray
    compressed: np.ndarray

    @property
    def count(self) -> int:
        return int(self.positions.shape[0])


# ---------------------------------------------------------------------------
# 几何工具
# ---------------------------------------------------------------------------

def spherical_to_cartesian(radius: np.ndarray, phi: np.ndarray, theta: np.ndarray) -> np.ndarray:
    """
    球坐标 -> 直角坐标（Y 轴朝上）
    phi 为极角（与 +Y 的夹角），theta 为方位角
    """
    sin_phi = np.sin(phi)
    x = radius * sin_phi * np.sin(theta)
    y = radius * np.cos(phi)
    z = radius * sin_phi * np.cos(theta)
    return np.stack([x, y, z], axis=-1)


def random_directions(count: int, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """Uniform directions on the unit sphere as (phi, theta)."""
    phi = np.arccos(rng.random(count) * 2 - 1)
    theta = rng.random(count) * 2 * np.pi
    return phi, theta


def random_shell(count: int, r_min: float, r_max: float, rng: np.random.Generator) -> np.ndarray:
    """Points with radius uniform in [r_min, r_max) and uniform direction."""
    radius = rng.random(count) * (r_max - r_min) + r_min
    phi, theta = random_directions(count, rng)
    return spherical_to_cartesian(radius, phi, theta)


def rotate_z(points: np.ndarray, angle: float) -> np.ndarray:
    """绕 Z 轴旋转（用于行星倾角）"""
    c, s = np.cos(angle), np.sin(angle)
    x, y, z = points[:, 0], points[:, 1], points[:, 2]
    return np.stack([x * c - y * s, x * s + y * c, z], axis=-1)


def safe_normalize(points: np.ndarray) -> np.ndarray:
    """Unit directions; zero-length rows map to the zero vector instead of NaN."""
    length = np.linalg.norm(points, axis=-1, keepdims=True)
    return np.divide(points, length, out=np.zeros_like(points), where=length > 0)


# ---------------------------------------------------------------------------
# 颜色
# ---------------------------------------------------------------------------

# 核心：暖白（老年恒星）
_CORE_PALETTE = np.array([
    (1.0, 0.95, 0.85),
    (1.0, 0.9, 0.75),
    (0.95, 0.85, 0.7),
])
# 旋臂：蓝白、青色（年轻恒星）
_ARM_PALETTE = np.array([
    (0.9, 0.95, 1.0),
    (0.7, 0.85, 1.0),
    (0.5, 0.7, 1.0),
    (0.6, 0.8, 1.0),
])
# 外围：深蓝、紫色
_OUTER_PALETTE = np.array([
    (0.4, 0.5, 0.8),
    (0.5, 0.4, 0.7),
    (0.6, 0.5, 0.8),
])

# 土星星体纬度带（阈值升序，后写覆盖先写）
_SATURN_EQUATOR = (0.9, 0.8, 0.6)
_SATURN_BANDS = [
    (3.0, (0.85, 0.75, 0.55)),
    (10.0, (0.8, 0.7, 0.5)),
    (18.0, (0.7, 0.65, 0.5)),
    (25.0, (0.35, 0.35, 0.3)),  # 极区
]


def stellar_density_colors(positions: np.ndarray, rng: np.random.Generator,
                           max_distance: float = 100.0) -> np.ndarray:
    """按到中心的距离分三档（核心/旋臂/外围）着色，附带亮度抖动"""
    count = positions.shape[0]
    dist = np.minimum(np.linalg.norm(positions, axis=1) / max_distance, 1.0)
    colors = np.empty((count, 3), dtype=np.float64)

    bands = [
        (dist < 0.25, _CORE_PALETTE, 1.1, 0.2),
        ((dist >= 0.25) & (dist < 0.7), _ARM_PALETTE, 0.9, 0.3),
        (dist >= 0.7, _OUTER_PALETTE, 0.7, 0.2),
    ]
    for mask, palette, base, spread in bands:
        n = int(mask.sum())
        if n == 0:
            continue
        picked = palette[rng.integers(0, len(palette), n)]
        brightness = base + rng.random(n) * spread
        colors[mask] = picked * brightness[:, None]

    # 单颗恒星的随机色偏
    colors += (rng.random((count, 3)) - 0.5) * 0.1
    return np.clip(colors, 0.0, 1.0)


def saturn_colors(positions: np.ndarray, rng: np.random.Generator,
                  tilt_deg: float = 27.0) -> np.ndarray:
    count = positions.shape[0]
    dist = np.linalg.norm(positions, axis=1)
    colors = np.empty((count, 3), dtype=np.float64)

    # 光环：按半径分带
    ring = dist > 35
    colors[ring] = (0.75, 0.65, 0.5)
    colors[ring & (((dist > 45) & (dist < 55)) | ((dist > 75) & (dist < 85)))] = (0.85, 0.8, 0.7)
    colors[ring & (dist > 68) & (dist < 72)] = (0.1, 0.1, 0.1)  # 卡西尼缝
    colors[ring] *= (0.8 + rng.random(int(ring.sum())) * 0.4)[:, None]

    # 星体：逆向旋转回本地坐标，按纬度分带
    body = ~ring
    abs_y = np.abs(rotate_z(positions[body], -np.radians(tilt_deg))[:, 1])
    body_colors = np.tile(np.array(_SATURN_EQUATOR), (len(abs_y), 1))
    for threshold, color in _SATURN_BANDS:
        body_colors[abs_y > threshold] = color
    colors[body] = body_colors * (0.9 + rng.random(len(abs_y)) * 0.2)[:, None]

    return np.clip(colors, 0.0, 1.0)


def earth_colors(positions: np.ndarray, rng: np.random.Generator,
                 tilt_deg: float = 23.5) -> np.ndarray:
    """
    地球着色：海洋/陆地由正弦波叠加的伪噪声决定，
    两极为冰盖，外层大气壳和随机 5% 为白色云
    """
    local = rotate_z(positions, -np.radians(tilt_deg))
    lx, ly, lz = local[:, 0], local[:, 1], local[:, 2]
    dist = np.linalg.norm(local, axis=1)
    abs_lat = np.abs(ly)

    nx, ny, nz = lx * 0.12, ly * 0.12, lz * 0.12
    noise = (np.sin(nx) * np.cos(ny)
             + np.sin(ny * 2.1 + nz) * 0.5
             + np.cos(nz * 1.5 + nx) * 0.3)

    count = positions.shape[0]
    colors = np.empty((count, 3), dtype=np.float64)

    # 海洋
    colors[:] = (0.0, 0.3, 0.7)
    colors[noise < -0.5] = (0.0, 0.1, 0.4)

    # 陆地（优先级低 -> 高依次覆盖）
    land = noise > 0.2
    colors[land] = (0.5, 0.4, 0.25)                                 # 平原
    colors[land & (abs_lat > 25)] = (0.6, 0.6, 0.6)                 # 冻土/山地
    colors[land & (abs_lat < 22)] = (0.2, 0.5, 0.2)                 # 绿地
    colors[land & (noise > 0.6) & (abs_lat < 20)] = (0.05, 0.35, 0.05)  # 雨林

    colors[rng.random(count) > 0.95] = (1.0, 1.0, 1.0)  # 云
    colors[abs_lat > 28] = (0.95, 0.98, 1.0)            # 冰盖
    colors[dist > 36] = (1.0, 1.0, 1.0)                 # 大气层
    return colors


# ---------------------------------------------------------------------------
# 模板策略
# ---------------------------------------------------------------------------

class ShapeTemplate:
    """模板基类：子类实现 positions()，需要时覆盖 colors()"""

    key: Template

    def positions(self, count: int, rng: np.random.Generator) -> np.ndarray:
        raise NotImplementedError

    def colors(self, positions: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        return stellar_density_colors(positions, rng)


class GalaxyTemplate(ShapeTemplate):
    """旋涡星系：15% 中心核球 + 两条对数螺旋臂"""
    key = Template.GALAXY

    def positions(self, count, rng):
        points = np.empty((count, 3))
        bulge = rng.random(count) < 0.15
        n_bulge = int(bulge.sum())
        n_arm = count - n_bulge

        points[bulge] = random_shell(n_bulge, 0.0, 25.0, rng)

        arm = rng.integers(0, 2, n_arm)
        t = rng.random(n_arm) * np.pi * 4
        r = 20 + t * 15
        angle = t + arm * np.pi + rng.random(n_arm) * 0.5
        # 盘面厚度，越往外越薄
        z = (rng.random(n_arm) - 0.5) * 8 * (1 - r / 100)
        x = r * np.cos(angle) * (1 + rng.random(n_arm) * 0.3)
        y = r * np.sin(angle) * (1 + rng.random(n_arm) * 0.3)
        points[~bulge] = np.stack([x, y, z], axis=-1)
        return points


class SpiralTemplate(ShapeTemplate):
    key = Template.SPIRAL

    def positions(self, count, rng):
        t = np.arange(count) / count * np.pi * 6
        r = 15 + t * 12
        angle = t * 2
        z = (rng.random(count) - 0.5) * 10
        return np.stack([r * np.cos(angle), r * np.sin(angle), z], axis=-1)


class BarredTemplate(ShapeTemplate):
    """棒旋星系：20% 中心棒 + 从棒两端伸出的旋臂"""
    key = Template.BARRED

    def positions(self, count, rng):
        points = np.empty((count, 3))
        bar = rng.random(count) < 0.2
        n_bar = int(bar.sum())
        n_arm = count - n_bar

        points[bar] = np.stack([
            (rng.random(n_bar) - 0.5) * 40,
            (rng.random(n_bar) - 0.5) * 8,
            (rng.random(n_bar) - 0.5) * 5,
        ], axis=-1)

        side = np.where(rng.random(n_arm) < 0.5, -1.0, 1.0)
        t = rng.random(n_arm) * np.pi * 3
        r = 25 + t * 10
        angle = t + np.radians(side * 20)
        z = (rng.random(n_arm) - 0.5) * 8
        points[~bar] = np.stack([r * np.cos(angle), r * np.sin(angle), z], axis=-1)
        return points


class SphereTemplate(ShapeTemplate):
    key = Template.SPHERE

    def positions(self, count, rng):
        return random_shell(count, 20.0, 100.0, rng)


class HeartTemplate(ShapeTemplate):
    """参数方程爱心，z 方向仅有 ±2.5 的轻微厚度"""
    key = Template.HEART
    scale = 35.0
    depth = 5.0

    def positions(self, count, rng):
        t = np.arange(count) / count * 2 * np.pi
        x = self.scale * 16 * np.sin(t) ** 3
        y = -self.scale * (13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t))
        z = (rng.random(count) - 0.5) * self.depth
        return np.stack([x, y + 20, z], axis=-1)


class FlowerTemplate(ShapeTemplate):
    """3D 李萨如曲线构成的花朵"""
    key = Template.FLOWER

    def positions(self, count, rng):
        t = np.arange(count) / count * 4 * np.pi
        scale = 25.0
        return np.stack([
            scale * np.sin(t) * np.cos(t * 5),
            scale * np.cos(t) * np.cos(t * 5),
            scale * np.sin(t * 5),
        ], axis=-1)


class SaturnTemplate(ShapeTemplate):
    """土星：70% 光环（含卡西尼缝）+ 30% 扁球壳，整体倾斜 27 度"""
    key = Template.SATURN
    tilt_deg = 27.0

    def _ring_radii(self, n: int, rng: np.random.Generator) -> np.ndarray:
        r = rng.random(n) * 50 + 40
        # 卡西尼缝内只保留 10%，其余重新采样
        reject = (r > 68) & (r < 72) & (rng.random(n) >= 0.1)
        while reject.any():
            k = int(reject.sum())
            r[reject] = rng.random(k) * 50 + 40
            redrawn = r[reject]
            reject[reject] = (redrawn > 68) & (redrawn < 72) & (rng.random(k) >= 0.1)
        return r

    def positions(self, count, rng):
        points = np.empty((count, 3))
        ring = rng.random(count) < 0.7
        n_ring = int(ring.sum())
        n_body = count - n_ring

        r = self._ring_radii(n_ring, rng)
        theta = np.flatnonzero(ring) / count * np.pi * 2 * 20 + rng.random(n_ring)
        points[ring] = np.stack([
            r * np.cos(theta),
            (rng.random(n_ring) - 0.5) * 0.5,
            r * np.sin(theta),
        ], axis=-1)

        phi, theta = random_directions(n_body, rng)
        body_r = 30.0
        points[~ring] = np.stack([
            body_r * np.sin(phi) * np.cos(theta),
            body_r * np.cos(phi) * 0.9,  # 两极略扁
            body_r * np.sin(phi) * np.sin(theta),
        ], axis=-1)

        return rotate_z(points, np.radians(self.tilt_deg))

    def colors(self, positions, rng):
        return saturn_colors(positions, rng, self.tilt_deg)


class EarthTemplate(ShapeTemplate):
    """地球：半径 35 的球壳，每 20 个粒子有 1 个在 37 处形成大气层"""
    key = Template.EARTH
    tilt_deg = 23.5

    def positions(self, count, rng):
        radius = np.where(np.arange(count) % 20 == 0, 37.0, 35.0)
        phi, theta = random_directions(count, rng)
        points = np.stack([
            radius * np.sin(phi) * np.cos(theta),
            radius * np.cos(phi),
            radius * np.sin(phi) * np.sin(theta),
        ], axis=-1)
        return rotate_z(points, np.radians(self.tilt_deg))

    def colors(self, positions, rng):
        return earth_colors(positions, rng, self.tilt_deg)


class BuddhaTemplate(ShapeTemplate):
    """向上收拢的抽象坐像"""
    key = Template.BUDDHA

    def positions(self, count, rng):
        r = rng.random(count) * 20
        t = rng.random(count) * np.pi * 2
        y_base = rng.random(count) * 80
        taper = 1 - y_base / 80
        return np.stack([r * np.cos(t) * taper, y_base - 40, r * np.sin(t) * taper], axis=-1)


class FireworksTemplate(ShapeTemplate):
    key = Template.FIREWORKS

    def positions(self, count, rng):
        return random_shell(count, 0.0, 100.0, rng)


TEMPLATES: Dict[Template, ShapeTemplate] = {
    t.key: t
    for t in (
        GalaxyTemplate(),
        SpiralTemplate(),
        BarredTemplate(),
        SphereTemplate(),
        HeartTemplate(),
        FlowerTemplate(),
        SaturnTemplate(),
        EarthTemplate(),
        BuddhaTemplate(),
        FireworksTemplate(),
    )
}

_missing = set(Template) - set(TEMPLATES)
if _missing:
    raise RuntimeError(f"templates without a generator: {sorted(t.value for t in _missing)}")


def resolve_template(name: Union[str, Template]) -> Template:
    if isinstance(name, Template):
        return name
    try:
        return Template(name)
    except ValueError:
        raise UnknownTemplate(str(name)) from None


def list_templates() -> List[str]:
    """列出所有可用模板"""
    return [t.value for t in Template]


def compressed_sphere(count: int, rng: np.random.Generator,
                      radius: float = config.COMPRESSED_RADIUS) -> np.ndarray:
    """握拳时的致密小球（与模板形状独立采样）"""
    return random_shell(count, 0.0, radius, rng).astype(np.float32)


def background_stars(count: int = config.BACKGROUND_STAR_COUNT,
                     rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """远处背景星（半径 400-800 的球壳）"""
    rng = rng or np.random.default_rng()
    return random_shell(count, 400.0, 800.0, rng).astype(np.float32)


def generate(template: Union[str, Template], count: int = config.PARTICLE_COUNT,
             rng: Optional[np.random.Generator] = None) -> ParticleShape:
    """
    生成粒子形状

    Args:
        template: 模板名或 Template 枚举
        count: 粒子数量
        rng: 随机源（测试时可传入固定种子）

    Raises:
        UnknownTemplate: 模板不存在
        ValueError: count < 1
    """
    key = resolve_template(template)
    if count < 1:
        raise ValueError(f"particle count must be positive, got {count}")
    rng = rng or np.random.default_rng()

    strategy = TEMPLATES[key]
    positions = strategy.positions(count, rng)
    colors = strategy.colors(positions, rng)
    compressed = compressed_sphere(count, rng)

    logger.info("generated %d particles for template %s", count, key.value)
    return ParticleShape(
        template=key,
        positions=positions.astype(np.float32),
        colors=colors.astype(np.float32),
        compressed=compressed,
    )
