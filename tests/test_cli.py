from bvh_frames.cli import main


def test_info(sample_file, capsys):
    assert main(["info", str(sample_file)]) == 0
    out = capsys.readouterr().out
    assert "joints:   6" in out
    assert "channels: 15" in out
    assert "frames:   2" in out
    assert "  Spine  offset=(0, 10, 0)  [Zrotation Xrotation Yrotation]" in out
    assert "End Site" in out


def test_resolve(sample_file, capsys):
    assert main(["resolve", str(sample_file), "--joint", "Hips", "--frame", "1", "--axis", "unreal"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("translation: [ 1. -2. 91.]")
    assert "rotation:" in out


def test_resolve_bad_frame(sample_file):
    assert main(["resolve", str(sample_file), "--joint", "Hips", "--frame", "9"]) == 1


def test_parse_failure(tmp_path):
    path = tmp_path / "bad.bvh"
    path.write_text("HIERARCHY ROOT Hip { CHANNELS 1 Wrotation } MOTION", encoding="utf-8")
    assert main(["info", str(path)]) == 1


def test_truncate_policy_flag(tmp_path, capsys):
    path = tmp_path / "short.bvh"
    path.write_text(
        "HIERARCHY ROOT Hip { OFFSET 0 0 0 CHANNELS 1 Xposition } MOTION Frames: 3 Frame Time: 0.5 1 2",
        encoding="utf-8",
    )
    assert main(["info", str(path)]) == 1
    assert main(["--motion-policy", "truncate", "info", str(path)]) == 0
    assert "frames:   2 (declared 3)" in capsys.readouterr().out
