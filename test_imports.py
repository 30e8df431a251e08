#!/usr/bin/env python3
"""测试所有导入和基本功能"""

import sys
import traceback

def test_imports():
    """测试所有模块的导入"""
    tests = [
        ("config", lambda: __import__('config')),
        ("core.errors", lambda: __import__('core.errors', fromlist=['UnknownTemplate'])),
        ("core.observation", lambda: __import__('core.observation', fromlist=['ObservationSlot'])),
        ("core.gesture_classifier", lambda: __import__('core.gesture_classifier', fromlist=['GestureClassifier'])),
        ("core.hand_detector", lambda: __import__('core.hand_detector', fromlist=['HandDetector'])),
        ("core.async_detector", lambda: __import__('core.async_detector', fromlist=['PoseSource'])),
        ("modules.shape_generator", lambda: __import__('modules.shape_generator', fromlist=['generate'])),
        ("modules.particle_state", lambda: __import__('modules.particle_state', fromlist=['ParticleStateMachine'])),
        ("modules.particle_session", lambda: __import__('modules.particle_session', fromlist=['ParticleSession'])),
        ("modules.renderer", lambda: __import__('modules.renderer', fromlist=['OpenCVPreviewRenderer'])),
        ("utils.smoothing", lambda: __import__('utils.smoothing', fromlist=['EmaSmoother'])),
    ]

    print("=" * 60)
    print("测试模块导入")
    print("=" * 60)

    passed = 0
    failed = 0

    for name, import_func in tests:
        try:
            import_func()
            print(f"✓ {name}")
            passed += 1
        except Exception as e:
            print(f"✗ {name}")
            print(f"  错误: {e}")
            traceback.print_exc()
            failed += 1

    print("=" * 60)
    print(f"结果: {passed} 通过, {failed} 失败")
    print("=" * 60)

    return failed == 0

def test_basic_functionality():
    """测试基本功能"""
    print("\n" + "=" * 60)
    print("测试基本功能")
    print("=" * 60)

    try:
        import config
        from core.hand_detector import HandDetector
        from modules.particle_session import ParticleSession
        from modules.renderer import OpenCVPreviewRenderer

        # 测试粒子生成
        print("✓ 创建 ParticleSession...")
        session = ParticleSession(config.DEFAULT_TEMPLATE, 2000)

        # 测试 HandDetector
        print("✓ 创建 HandDetector...")
        detector = HandDetector(max_num_hands=config.MAX_NUM_HANDS)

        # 测试渲染
        print("✓ 测试预览渲染...")
        renderer = OpenCVPreviewRenderer(width=320, height=180, star_count=500)
        frame = renderer.render(session.tick(), renderer.new_frame())

        # 测试模板切换
        print("✓ 测试模板切换...")
        session.set_template("saturn")
        renderer.render(session.tick(), frame)

        print("=" * 60)
        print("所有基本功能测试通过！")
        print("=" * 60)

        detector.close()
        return True

    except Exception as e:
        print(f"✗ 功能测试失败: {e}")
        traceback.print_exc()
        return False

if __name__ == "__main__":
    success = test_imports() and test_basic_functionality()
    sys.exit(0 if success else 1)
