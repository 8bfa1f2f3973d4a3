"""Executors that build a plan with cargo, cross or cargo-zigbuild."""

from __future__ import annotations

import dataclasses
import os
import subprocess
from collections.abc import Callable

from xforge.builder import (
    BuildError,
    BuildExecutor,
    BuildPlan,
    BuildTargetPlan,
    BuiltArtifact,
)


def profile_args(profile: str) -> list[str]:
    """Return the cargo arguments that select a build profile."""
    if profile == "release":
        return ["--release"]
    return ["--profile", profile]


def build_environment(plan: BuildPlan, target: BuildTargetPlan) -> dict[str, str]:
    """Return the environment variables a target's build command adds."""
    env: dict[str, str] = {}
    if plan.profile.rustflags:
        env["RUSTFLAGS"] = " ".join(plan.profile.rustflags)
    for entry in (*plan.profile.env, *target.env):
        env[entry.key] = entry.value
    channel = plan.profile.toolchain.channel
    if channel is not None:
        env["RUSTUP_TOOLCHAIN"] = channel
    return env


def _describe_status(returncode: int) -> str:
    if returncode < 0:
        return f"signal: {-returncode}"
    return f"exit status: {returncode}"


def _command(
    program: list[str],
    plan: BuildPlan,
    target: BuildTargetPlan,
    extra: list[str] = (),
) -> list[str]:
    argv = [
        *program,
        *profile_args(plan.profile.name),
        "--target",
        target.rust_target_triple,
        "--manifest-path",
        target.cargo_manifest_path,
        *extra,
        *plan.profile.cargo_args,
        *target.cargo_args,
    ]
    if target.cargo_features:
        argv += ["--features", ",".join(target.cargo_features)]
    return argv


def _run_targets(
    plan: BuildPlan,
    label: str,
    command: Callable[[BuildPlan, BuildTargetPlan], list[str]],
    launch_error: Callable[[OSError], BuildError],
) -> list[BuiltArtifact]:
    artifacts = []
    for target in plan.targets:
        argv = command(plan, target)
        env = {**os.environ, **build_environment(plan, target)}
        try:
            completed = subprocess.run(argv, cwd=target.working_dir, env=env, check=False)
        except OSError as error:
            raise launch_error(error) from error
        if completed.returncode != 0:
            raise BuildError(
                f"{label} exited with status {_describe_status(completed.returncode)}"
            )
        artifacts.append(dataclasses.replace(target.artifact))
    return artifacts


class CargoExecutor(BuildExecutor):
    """Builds each target with `cargo build`."""

    def command(self, plan: BuildPlan, target: BuildTargetPlan) -> list[str]:
        return _command(["cargo", "build"], plan, target)

    def execute(self, plan: BuildPlan) -> list[BuiltArtifact]:
        return _run_targets(
            plan,
            "cargo build",
            self.command,
            lambda error: BuildError(f"cargo build failed: {error}"),
        )


class CrossExecutor(BuildExecutor):
    """Builds each target with `cross build` in its configured image."""

    def command(self, plan: BuildPlan, target: BuildTargetPlan) -> list[str]:
        if target.cross_image is None:
            raise BuildError(
                f"cross image missing for target {target.rust_target_triple}"
            )
        return _command(["cross", "build"], plan, target, ["--image", target.cross_image])

    def execute(self, plan: BuildPlan) -> list[BuiltArtifact]:
        def launch_error(error: OSError) -> BuildError:
            if isinstance(error, FileNotFoundError):
                return BuildError("cross is not installed")
            return BuildError(f"cross build failed: {error}")

        return _run_targets(plan, "cross build", self.command, launch_error)


def ensure_zig_available() -> None:
    """Raise BuildError unless `zig version` runs successfully."""
    try:
        completed = subprocess.run(
            ["zig", "version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except FileNotFoundError as error:
        raise BuildError("zig is not installed") from error
    except OSError as error:
        raise BuildError(f"failed to invoke zig: {error}") from error
    if completed.returncode != 0:
        raise BuildError(
            f"zig is not available (status {_describe_status(completed.returncode)})"
        )


class ZigbuildExecutor(BuildExecutor):
    """Builds each target with `cargo zigbuild`."""

    def command(self, plan: BuildPlan, target: BuildTargetPlan) -> list[str]:
        return _command(["cargo", "zigbuild"], plan, target)

    def execute(self, plan: BuildPlan) -> list[BuiltArtifact]:
        ensure_zig_available()
        return _run_targets(
            plan,
            "cargo zigbuild",
            self.command,
            lambda error: BuildError(f"cargo zigbuild failed: {error}"),
        )