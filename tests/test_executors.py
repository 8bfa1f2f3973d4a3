import subprocess
from unittest.mock import patch

import pytest

from xforge.builder import (
    BuildEnvVar,
    BuildError,
    BuildPlan,
    BuildProfile,
    BuildTargetPlan,
    BuiltArtifact,
    Toolchain,
)
from xforge.executors import (
    CargoExecutor,
    CrossExecutor,
    ZigbuildExecutor,
    build_environment,
    ensure_zig_available,
    profile_args,
)

TRIPLE = "x86_64-unknown-linux-gnu"


def make_target(working_dir, triple=TRIPLE, **overrides):
    artifact = BuiltArtifact(
        platform="linux-x64",
        build_id="b1-abc",
        archive_kind="tar.gz",
        artifact_name="integration-build-b1-abc-linux-x64.tar.gz",
        output_dir=str(working_dir),
        library_path=str(working_dir / "libintegration_build.rlib"),
        manifest_path=str(working_dir / "xforge-manifest.json"),
        build_id_path=str(working_dir / "build-id.txt"),
    )
    fields = dict(
        platform="linux-x64",
        rust_target_triple=triple,
        working_dir=str(working_dir),
        cargo_manifest_path=str(working_dir / "Cargo.toml"),
        artifact=artifact,
    )
    fields.update(overrides)
    return BuildTargetPlan(**fields)


def make_plan(targets, profile=None):
    return BuildPlan(
        package_name="integration-build",
        build_id="b1-abc",
        profile=profile or BuildProfile(name="release"),
        targets=list(targets),
    )


def completed(returncode):
    return subprocess.CompletedProcess(args=[], returncode=returncode)


def test_profile_args_release():
    assert profile_args("release") == ["--release"]


def test_profile_args_named_profile():
    assert profile_args("dev") == ["--profile", "dev"]


def test_build_environment_empty_plan(tmp_path):
    plan = make_plan([make_target(tmp_path)])
    assert build_environment(plan, plan.targets[0]) == {}


def test_build_environment_merges_in_order(tmp_path):
    profile = BuildProfile(
        name="release",
        toolchain=Toolchain(channel="stable"),
        rustflags=["-C", "opt-level=3"],
        env=[BuildEnvVar(key="A", value="profile"), BuildEnvVar(key="B", value="b")],
    )
    target = make_target(tmp_path, env=[BuildEnvVar(key="A", value="target")])
    env = build_environment(make_plan([target], profile), target)
    assert env == {
        "RUSTFLAGS": "-C opt-level=3",
        "A": "target",
        "B": "b",
        "RUSTUP_TOOLCHAIN": "stable",
    }


def test_cargo_command_order(tmp_path):
    profile = BuildProfile(name="dev", cargo_args=["--locked"])
    target = make_target(
        tmp_path,
        cargo_manifest_path="Cargo.toml",
        cargo_args=["--target-dir", "/t"],
        cargo_features=["a", "b"],
    )
    argv = CargoExecutor().command(make_plan([target], profile), target)
    assert argv == [
        "cargo", "build", "--profile", "dev",
        "--target", TRIPLE, "--manifest-path", "Cargo.toml",
        "--locked", "--target-dir", "/t",
        "--features", "a,b",
    ]


def test_cargo_execute_returns_artifacts(tmp_path):
    target = make_target(tmp_path)
    plan = make_plan([target])
    with patch("xforge.executors.subprocess.run", return_value=completed(0)) as run:
        artifacts = CargoExecutor().execute(plan)
    assert len(artifacts) == 1
    assert artifacts[0].build_id == "b1-abc"
    assert artifacts[0].artifact_name == target.artifact.artifact_name
    args, kwargs = run.call_args
    assert args[0][:3] == ["cargo", "build", "--release"]
    assert kwargs["cwd"] == str(tmp_path)


def test_cargo_execute_passes_environment(tmp_path):
    profile = BuildProfile(name="release", toolchain=Toolchain(channel="nightly"))
    target = make_target(tmp_path, env=[BuildEnvVar(key="CARGO_TARGET_DIR", value="/t")])
    with patch("xforge.executors.subprocess.run", return_value=completed(0)) as run:
        artifacts = CargoExecutor().execute(make_plan([target], profile))
    assert artifacts == [target.artifact]
    env = run.call_args.kwargs["env"]
    assert env["CARGO_TARGET_DIR"] == "/t"
    assert env["RUSTUP_TOOLCHAIN"] == "nightly"


def test_cargo_execute_builds_every_target(tmp_path):
    targets = [make_target(tmp_path), make_target(tmp_path, triple="aarch64-unknown-linux-gnu")]
    with patch("xforge.executors.subprocess.run", return_value=completed(0)) as run:
        artifacts = CargoExecutor().execute(make_plan(targets))
    assert len(artifacts) == 2
    assert run.call_count == 2
    assert "aarch64-unknown-linux-gnu" in run.call_args_list[1].args[0]


def test_cargo_execute_nonzero_status(tmp_path):
    plan = make_plan([make_target(tmp_path)])
    with patch("xforge.executors.subprocess.run", return_value=completed(101)):
        with pytest.raises(BuildError) as info:
            CargoExecutor().execute(plan)
    assert info.value.message == "cargo build exited with status exit status: 101"


def test_cargo_execute_launch_failure(tmp_path):
    plan = make_plan([make_target(tmp_path)])
    with patch("xforge.executors.subprocess.run", side_effect=FileNotFoundError("cargo")):
        with pytest.raises(BuildError) as info:
            CargoExecutor().execute(plan)
    assert info.value.message.startswith("cargo build failed: ")


def test_cross_command_includes_image(tmp_path):
    target = make_target(tmp_path, cargo_manifest_path="Cargo.toml", cross_image="img:1")
    argv = CrossExecutor().command(make_plan([target]), target)
    assert argv == [
        "cross", "build", "--release",
        "--target", TRIPLE, "--manifest-path", "Cargo.toml",
        "--image", "img:1",
    ]


def test_cross_missing_image(tmp_path):
    plan = make_plan([make_target(tmp_path)])
    with patch("xforge.executors.subprocess.run", return_value=completed(0)) as run:
        with pytest.raises(BuildError) as info:
            CrossExecutor().execute(plan)
    assert info.value.message == f"cross image missing for target {TRIPLE}"
    assert run.call_count == 0


def test_cross_not_installed(tmp_path):
    plan = make_plan([make_target(tmp_path, cross_image="img")])
    with patch("xforge.executors.subprocess.run", side_effect=FileNotFoundError("cross")):
        with pytest.raises(BuildError) as info:
            CrossExecutor().execute(plan)
    assert info.value.message == "cross is not installed"


def test_cross_other_launch_failure(tmp_path):
    plan = make_plan([make_target(tmp_path, cross_image="img")])
    with patch("xforge.executors.subprocess.run", side_effect=PermissionError("denied")):
        with pytest.raises(BuildError) as info:
            CrossExecutor().execute(plan)
    assert info.value.message.startswith("cross build failed: ")


def test_cross_nonzero_status(tmp_path):
    plan = make_plan([make_target(tmp_path, cross_image="img")])
    with patch("xforge.executors.subprocess.run", return_value=completed(2)):
        with pytest.raises(BuildError) as info:
            CrossExecutor().execute(plan)
    assert info.value.message == "cross build exited with status exit status: 2"


def test_zig_not_installed():
    with patch("xforge.executors.subprocess.run", side_effect=FileNotFoundError("zig")):
        with pytest.raises(BuildError) as info:
            ensure_zig_available()
    assert info.value.message == "zig is not installed"


def test_zig_unavailable_status():
    with patch("xforge.executors.subprocess.run", return_value=completed(1)):
        with pytest.raises(BuildError) as info:
            ensure_zig_available()
    assert info.value.message == "zig is not available (status exit status: 1)"


def test_zig_invoke_failure():
    with patch("xforge.executors.subprocess.run", side_effect=PermissionError("denied")):
        with pytest.raises(BuildError) as info:
            ensure_zig_available()
    assert info.value.message.startswith("failed to invoke zig: ")


def test_zigbuild_command(tmp_path):
    target = make_target(tmp_path)
    argv = ZigbuildExecutor().command(make_plan([target]), target)
    assert argv[:3] == ["cargo", "zigbuild", "--release"]


def test_zigbuild_checks_zig_then_builds(tmp_path):
    plan = make_plan([make_target(tmp_path)])
    with patch("xforge.executors.subprocess.run", return_value=completed(0)) as run:
        artifacts = ZigbuildExecutor().execute(plan)
    assert run.call_args_list[0].args[0] == ["zig", "version"]
    assert run.call_args_list[1].args[0][:2] == ["cargo", "zigbuild"]
    assert [a.build_id for a in artifacts] == ["b1-abc"]


def test_zigbuild_stops_when_zig_missing(tmp_path):
    plan = make_plan([make_target(tmp_path)])
    with patch("xforge.executors.subprocess.run", side_effect=FileNotFoundError("zig")) as run:
        with pytest.raises(BuildError):
            ZigbuildExecutor().execute(plan)
    assert run.call_count == 1