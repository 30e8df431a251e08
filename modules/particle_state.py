# -*- coding: utf-8 -*-
"""
3D粒子状态机
根据当前手势和控制信号，每帧把粒子的缩放、色调、旋转、位置和形状
用指数平滑推向目标值。所有计算都是 O(N) 的向量化操作，不做任何 I/O。
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

import config
from core.gesture_classifier import ControlSignals, Gesture, HandMode
from modules.shape_generator import ParticleShape, random_shell, safe_normalize
from utils.smoothing import EmaSmoother, approach, approach_inplace

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]

# 手势 -> (材质色调, 粒子大小)
TINT_TARGETS: Dict[Gesture, Tuple[RGB, float]] = {
    Gesture.CLOSED: (config.TINT_CLOSED, config.POINT_SIZE_CLOSED),
    Gesture.OPEN: (config.TINT_OPEN, config.POINT_SIZE_OPEN),
    Gesture.NEUTRAL: (config.TINT_NEUTRAL, config.POINT_SIZE_NEUTRAL),
    Gesture.PEACE: (config.TINT_NEUTRAL, config.POINT_SIZE_NEUTRAL),
}


def scale_target(gesture: Gesture, signals: ControlSignals,
                 closed: float = config.SCALE_CLOSED,
                 opened: float = config.SCALE_OPEN,
                 neutral: float = config.SCALE_NEUTRAL,
                 pair_min: float = config.SCALE_PAIR_MIN,
                 pair_max: float = config.SCALE_PAIR_MAX) -> float:
    """
    缩放目标值
    - 握拳 0.7，张开 2.5
    - 双手模式（neutral + PAIR）按手间距离在 [pair_min, pair_max] 线性插值
    - 其余为 1.0
    """
    if gesture == Gesture.CLOSED:
        return closed
    if gesture == Gesture.OPEN:
        return opened
    if (gesture == Gesture.NEUTRAL and signals.hand_mode == HandMode.PAIR
            and signals.hand_distance is not None):
        return pair_min + (pair_max - pair_min) * signals.hand_distance
    return neutral


def plasma_noise(directions: np.ndarray, clock: float) -> np.ndarray:
    """基于方向和时钟的三维驻波，用来让压缩球表面"呼吸"起伏"""
    nx, ny, nz = directions[:, 0], directions[:, 1], directions[:, 2]
    return (np.sin(nx * 4 + clock) * np.cos(ny * 4 + clock) * np.sin(nz * 4 + clock * 1.5)
            + np.sin(nx * 10 - clock * 2) * 0.5)


@dataclass(frozen=True)
class Transform:
    position: Tuple[float, float, float]
    rotation: Tuple[float, float, float]  # 弧度 (x, y, z)
    scale: float


@dataclass(frozen=True)
class RenderSnapshot:
    """
    交给渲染后端的只读快照。

    positions / colors 是状态机内部缓冲区的只读视图：
    positions 每帧原地更新，colors 只在 colors_version 变化时需要重新上传。
    """
    positions: np.ndarray
    colors: np.ndarray
    colors_version: int
    transform: Transform
    tint: RGB
    point_size: float
    core_scale: float
    core_position: Tuple[float, float, float]
    core_rotation: Tuple[float, float, float]
    gesture: Gesture
    clock: float

    @property
    def count(self) -> int:
        return int(self.positions.shape[0])


def _readonly(arr: np.ndarray) -> np.ndarray:
    view = arr.view()
    view.flags.writeable = False
    return view


def _vec3(values: Sequence[float]) -> Tuple[float, float, float]:
    return float(values[0]), float(values[1]), float(values[2])


class ParticleStateMachine:
    """3D粒子状态机（手势为主状态）"""

    def __init__(
        self,
        shape: ParticleShape,
        rng: Optional[np.random.Generator] = None,
        position_rate: float = config.POSITION_SMOOTHING,
        rotation_rate: float = config.ROTATION_SMOOTHING,
        scale_rate: float = config.SCALE_SMOOTHING,
        tint_rate: float = config.TINT_SMOOTHING,
        morph_rate: float = config.MORPH_SMOOTHING,
        core_rate: float = config.CORE_SMOOTHING,
        tint_floor: float = config.TINT_FLOOR,
        clock_step: float = config.CLOCK_STEP,
    ) -> None:
        self.rng = rng or np.random.default_rng()
        self.rotation_rate = rotation_rate
        self.morph_rate = morph_rate
        self.tint_floor = tint_floor
        self.clock_step = clock_step

        # 自转（无手时）
        self.ambient_rotation_y = config.AMBIENT_ROTATION_Y
        self.ambient_rotation_z = config.AMBIENT_ROTATION_Z

        # 爆炸球壳
        self.explode_min_radius = config.EXPLODE_MIN_RADIUS
        self.explode_max_radius = config.EXPLODE_MAX_RADIUS

        # 发光内核
        self.core_pulse_base = config.CORE_PULSE_BASE
        self.core_pulse_amplitude = config.CORE_PULSE_AMPLITUDE
        self.core_pulse_speed = config.CORE_PULSE_SPEED
        self.noise_amplitude = config.NOISE_AMPLITUDE

        # 全局变换与材质
        self.clock = 0.0
        self.rotation = np.zeros(3)
        self._position = EmaSmoother(position_rate, initial=(0.0, 0.0, 0.0))
        self._scale = EmaSmoother(scale_rate, initial=(1.0,))
        self._tint = EmaSmoother(tint_rate, initial=config.TINT_NEUTRAL)
        self._core_scale = EmaSmoother(core_rate, initial=(0.0,))
        self.point_size = config.POINT_SIZE_INITIAL
        self.core_position = np.zeros(3)
        self.core_rotation = np.zeros(3)
        self.gesture = Gesture.NEUTRAL

        self.colors_version = 0
        self.load_shape(shape)

    # ------------------------------------------------------------------
    # 形状
    # ------------------------------------------------------------------

    def load_shape(self, shape: ParticleShape) -> None:
        """切换模板：位置重置为新形状，颜色版本号 +1；变换、色调、时钟保持不变"""
        self.template = shape.template
        self.base_positions = np.array(shape.positions, dtype=np.float32)
        self.compressed_positions = np.array(shape.compressed, dtype=np.float32)
        self.colors = np.array(shape.colors, dtype=np.float32)
        self.positions = self.base_positions.copy()
        self._compressed_dirs = safe_normalize(self.compressed_positions)
        self.colors_version += 1
        logger.info("loaded %s shape with %d particles", shape.template.value, shape.count)

    @property
    def count(self) -> int:
        return int(self.positions.shape[0])

    # ------------------------------------------------------------------
    # 各通道
    # ------------------------------------------------------------------

    @property
    def scale(self) -> float:
        return float(self._scale.value[0])

    @property
    def position(self) -> np.ndarray:
        return self._position.value

    @property
    def tint(self) -> RGB:
        return _vec3(self._tint.value)

    @property
    def core_scale(self) -> float:
        return float(self._core_scale.value[0])

    def blend_tint(self, target: Sequence[float], rate: Optional[float] = None) -> RGB:
        """混合材质色调，之后每个通道下限钳制到 tint_floor"""
        if rate is None:
            blended = self._tint.push(target)
        else:
            blended = approach(self._tint.value, np.asarray(target, dtype=np.float64), rate)
        self._tint.reset(np.maximum(blended, self.tint_floor))
        return self.tint

    def apply_tint_override(self, rgb: Sequence[float],
                            blend: float = config.TINT_OVERRIDE_BLEND) -> RGB:
        """取色器：把选中的颜色按 30% 混入当前色调"""
        return self.blend_tint(rgb, blend)

    def compressed_target(self, clock: Optional[float] = None) -> np.ndarray:
        """握拳形态的目标位置：压缩球 * (1 + 5% 驻波起伏)"""
        t = self.clock if clock is None else clock
        scale_var = 1.0 + plasma_noise(self._compressed_dirs, t) * self.noise_amplitude
        return self.compressed_positions * scale_var[:, None].astype(np.float32)

    def morph(self, target: np.ndarray) -> None:
        """逐坐标向目标位置平滑一步（没有"完成"状态，收敛即结束）"""
        approach_inplace(self.positions, target, self.morph_rate)

    def explode(self) -> None:
        """
        一次性把所有粒子重新撒到大球壳里（覆盖本帧的平滑插值）。
        不修改 base / compressed 参考数组。
        """
        self.positions[:] = random_shell(
            self.count, self.explode_min_radius, self.explode_max_radius, self.rng
        )

    def _update_rotation(self, signals: ControlSignals, hand_tracked: bool) -> None:
        if hand_tracked:
            # 单手控制：Z 跟随手腕滚转，Y 跟随手掌偏航
            self.rotation[2] = approach(self.rotation[2], signals.rotation_z, self.rotation_rate)
            self.rotation[1] = approach(self.rotation[1], signals.rotation_y, self.rotation_rate)
        else:
            # 默认缓慢自转
            self.rotation[1] += self.ambient_rotation_y
            self.rotation[2] += self.ambient_rotation_z

    # ------------------------------------------------------------------
    # 每帧入口
    # ------------------------------------------------------------------

    def advance(self, gesture: Gesture, signals: ControlSignals,
                hand_tracked: bool = False) -> RenderSnapshot:
        """
        推进一帧

        Args:
            gesture: 平滑后的手势
            signals: 控制信号
            hand_tracked: 单手手势历史非空时为 True（旋转跟随手）
        """
        if gesture != self.gesture:
            logger.debug("particle state %s -> %s", self.gesture.value, gesture.value)
            self.gesture = gesture

        self.clock += self.clock_step

        # 1. 旋转（模式切换，不在两种模式之间插值）
        self._update_rotation(signals, hand_tracked)

        # 2. 缩放
        self._scale.push((scale_target(gesture, signals),))

        # 3. 色调与粒子大小
        tint, size = TINT_TARGETS[gesture]
        self.blend_tint(tint)
        self.point_size = size

        # 4. 剪刀手：每帧都重新爆炸
        if gesture == Gesture.PEACE:
            self.explode()

        # 5. 形变：握拳 -> 等离子球，张开 -> 回到原形
        target_core = 0.0
        if gesture == Gesture.CLOSED:
            target_core = self.core_pulse_base + np.sin(self.clock * self.core_pulse_speed) * self.core_pulse_amplitude
            self.morph(self.compressed_target())
        elif gesture == Gesture.OPEN:
            self.morph(self.base_positions)

        # 6. 发光内核跟随主体（用的是本帧位置平滑之前的变换）
        self._core_scale.push((target_core,))
        self.core_position = self._position.value.copy()
        self.core_rotation = self.rotation.copy()

        # 7. 整体跟随手的位置
        self._position.push(signals.position)

        return self.snapshot()

    def snapshot(self) -> RenderSnapshot:
        return RenderSnapshot(
            positions=_readonly(self.positions),
            colors=_readonly(self.colors),
            colors_version=self.colors_version,
            transform=Transform(
                position=_vec3(self._position.value),
                rotation=_vec3(self.rotation),
                scale=self.scale,
            ),
            tint=self.tint,
            point_size=self.point_size,
            core_scale=self.core_scale,
            core_position=_vec3(self.core_position),
            core_rotation=_vec3(self.core_rotation),
            gesture=self.gesture,
            clock=self.clock,
        )
