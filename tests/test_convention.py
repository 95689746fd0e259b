import numpy as np
import pytest

from bvh_frames.bvh.kinematics import eval_pose_world, resolve
from bvh_frames.bvh.math3d import quat_from_axis_angle, quat_mul, quat_to_matrix
from bvh_frames.convention import (
    ConventionConfig,
    CoordinateConvention,
    build_axis_matrix,
    build_convention,
    estimate_scale_factor_auto,
    load_axis_presets,
)


@pytest.fixture
def presets():
    return load_axis_presets()


def test_presets_ship_with_package(presets):
    assert {"none", "unreal", "blender", "z_up_left_handed", "y_up_left_handed"} <= set(presets)


def test_unreal_mapping(presets):
    conv = build_convention(ConventionConfig(axis_preset_id="unreal"), presets)
    np.testing.assert_allclose(conv.convert_translation([1, 2, 3]), [1, -3, 2])
    # (w, x, y, z) -> (w, x, -z, y)
    np.testing.assert_allclose(conv.convert_rotation([0.5, 0.1, 0.2, 0.3]), [0.5, 0.1, -0.3, 0.2])
    assert conv.handedness == 1.0


def test_blender_preset_is_z_up_right_handed(presets):
    conv = build_convention(ConventionConfig(axis_preset_id="blender"), presets)
    np.testing.assert_allclose(conv.convert_translation([0, 1, 0]), [0, 0, 1])
    np.testing.assert_allclose(conv.convert_translation([0, 0, 1]), [0, -1, 0])
    assert conv.handedness == 1.0


def test_left_handed_preset_flips_rotation_sense(presets):
    conv = build_convention(ConventionConfig(axis_preset_id="y_up_left_handed"), presets)
    assert conv.handedness == -1.0
    q = quat_from_axis_angle(1, 30.0)
    # Mirroring Z reverses the sense of a rotation about Y
    np.testing.assert_allclose(conv.convert_rotation(q), quat_from_axis_angle(1, -30.0), atol=1e-12)


@pytest.mark.parametrize("preset_id", ["none", "unreal", "blender", "z_up_left_handed", "y_up_left_handed"])
@pytest.mark.parametrize("flip_x", [False, True])
def test_rotation_and_translation_stay_consistent(presets, preset_id, flip_x):
    conv = build_convention(ConventionConfig(axis_preset_id=preset_id, flip_x=flip_x), presets)
    q = quat_mul(quat_from_axis_angle(2, 30.0), quat_from_axis_angle(0, 45.0))
    v = np.array([0.3, -1.2, 2.5])

    rotated_then_converted = conv.convert_translation(quat_to_matrix(q) @ v)
    converted_then_rotated = quat_to_matrix(conv.convert_rotation(q)) @ conv.convert_translation(v)
    np.testing.assert_allclose(rotated_then_converted, converted_then_rotated, atol=1e-12)


def test_flips_compose_with_preset():
    m = build_axis_matrix(np.eye(3), flip_x=True, flip_y=False, flip_z=True)
    np.testing.assert_allclose(m, np.diag([-1.0, 1.0, -1.0]))


def test_invalid_axis_matrix():
    with pytest.raises(ValueError):
        CoordinateConvention(axis_matrix=np.eye(2))
    with pytest.raises(ValueError):
        CoordinateConvention(axis_matrix=np.diag([2.0, 1.0, 1.0]))


def test_unknown_preset(presets):
    with pytest.raises(KeyError):
        build_convention(ConventionConfig(axis_preset_id="maya_2031"), presets)


def test_scale_factor_applies_to_translation_only(presets):
    conv = build_convention(ConventionConfig(scale_mode="factor", scale_factor=0.01), presets)
    np.testing.assert_allclose(conv.convert_translation([100, 200, 300]), [1, 2, 3])
    q = quat_from_axis_angle(0, 10.0)
    np.testing.assert_allclose(conv.convert_rotation(q), q)


def test_auto_scale(sample_doc, presets):
    assert estimate_scale_factor_auto(sample_doc) == pytest.approx(0.1)
    conv = build_convention(ConventionConfig(scale_mode="auto"), presets, sample_doc)
    assert conv.scale == pytest.approx(0.1)
    with pytest.raises(ValueError):
        build_convention(ConventionConfig(scale_mode="auto"), presets)


def test_bad_scale_mode(presets):
    with pytest.raises(ValueError):
        build_convention(ConventionConfig(scale_mode="inches"), presets)


def test_resolve_applies_convention(sample_doc, presets):
    conv = build_convention(ConventionConfig(axis_preset_id="unreal"), presets)
    t, q = resolve(sample_doc, "Hips", 1, conv)
    np.testing.assert_allclose(t, [1, -2, 91])
    raw_t, raw_q = resolve(sample_doc, "Hips", 1)
    np.testing.assert_allclose(q, conv.convert_rotation(raw_q))


def test_world_pose_with_convention(sample_doc, presets):
    conv = build_convention(ConventionConfig(axis_preset_id="unreal"), presets)
    pose = eval_pose_world(sample_doc, 0, conv)
    positions = dict(zip(pose.joint_names, pose.positions))
    np.testing.assert_allclose(positions["LeftLeg"], (5, 0, 80), atol=1e-9)
