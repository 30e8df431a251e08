CAMERA_ID = 0
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480

# Preview window
WINDOW_NAME = "ParticleUniverse"
PREVIEW_WIDTH = 1280
PREVIEW_HEIGHT = 720
PREVIEW_FOV = 75.0                  # 垂直视场角（度）
PREVIEW_CAMERA_DISTANCE = 250.0     # 相机到原点的距离（世界单位）
BACKGROUND_STAR_COUNT = 10000

# Pose source（手部检测）
MAX_NUM_HANDS = 2                   # 双手模式需要同时检测两只手
DETECTION_CONFIDENCE = 0.7
TRACKING_CONFIDENCE = 0.7
ASYNC_INFERENCE = True              # 推理放到后台线程，主循环永不等待
INFER_WIDTH = 640
INFER_HEIGHT = 360

# Particles
PARTICLE_COUNT = 35000
DEFAULT_TEMPLATE = "galaxy"
COMPRESSED_RADIUS = 30.0            # 握拳时的致密球半径
EXPLODE_MIN_RADIUS = 50.0
EXPLODE_MAX_RADIUS = 350.0

# Gesture smoothing
GESTURE_HISTORY_SIZE = 5            # 多数投票窗口（帧）

# Control signals
POSITION_SCALE = 200.0              # 归一化坐标 -> 世界坐标
HAND_DISTANCE_MIN = 0.05            # 双手腕最小距离（归一化）
HAND_DISTANCE_MAX = 0.7             # 双手腕最大距离（归一化）
YAW_SENSITIVITY = 8.0
YAW_GAIN = 2.0
NO_HAND_POSITION_DECAY = 0.1        # 无手时回到原点的速度

# Smoothing rates（每帧固定混合系数，不随帧率归一化）
POSITION_SMOOTHING = 0.15
ROTATION_SMOOTHING = 0.1
SCALE_SMOOTHING = 0.1
TINT_SMOOTHING = 0.15
MORPH_SMOOTHING = 0.08              # 形变稍慢，效果更有张力
CORE_SMOOTHING = 0.1
TINT_OVERRIDE_BLEND = 0.3

# Animation
CLOCK_STEP = 0.05                   # 每帧动画时钟增量
AMBIENT_ROTATION_Y = 0.0008         # 无手时的自转速度（弧度/帧）
AMBIENT_ROTATION_Z = 0.0001
NOISE_AMPLITUDE = 0.05              # 等离子球表面起伏（5%）

# Scale targets
SCALE_CLOSED = 0.7
SCALE_OPEN = 2.5
SCALE_NEUTRAL = 1.0
SCALE_PAIR_MIN = 0.5
SCALE_PAIR_MAX = 2.0

# Tint（材质颜色，与粒子自身颜色相乘）
TINT_FLOOR = 0.3                    # 每个通道的下限，保证粒子始终可见
TINT_CLOSED = (1.5, 0.9, 0.2)       # 暖橙色（收缩）
TINT_OPEN = (0.5, 1.0, 1.3)         # 青色（扩张）
TINT_NEUTRAL = (1.0, 1.0, 1.0)      # 白色，保留星系渐变

# Point sizes
POINT_SIZE_CLOSED = 1.0
POINT_SIZE_OPEN = 3.0
POINT_SIZE_NEUTRAL = 1.8
POINT_SIZE_INITIAL = 1.9

# Glow core
CORE_RADIUS = 25.0
CORE_COLOR = (0, 69, 255)           # BGR OrangeRed
CORE_OPACITY = 0.4
CORE_PULSE_BASE = 0.8
CORE_PULSE_AMPLITUDE = 0.1
CORE_PULSE_SPEED = 0.5

# UI tint presets（按 c 键循环）
TINT_PRESETS = [
    (1.0, 1.0, 1.0),
    (1.0, 0.42, 0.42),
    (0.42, 0.8, 1.0),
    (0.75, 0.5, 1.0),
    (1.0, 0.85, 0.4),
]
