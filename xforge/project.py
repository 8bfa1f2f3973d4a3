"""Project discovery and build planning for a crate directory."""

from __future__ import annotations

import subprocess
import tomllib
from collections.abc import Mapping, Sequence
from enum import StrEnum
from pathlib import Path

from xforge.builder import (
    BuildEnvVar,
    BuildError,
    BuildExecutor,
    BuildPlan,
    BuildProfile,
    BuildTargetPlan,
    BuiltArtifact,
    Toolchain,
)
from xforge.executors import CargoExecutor, CrossExecutor, ZigbuildExecutor

MANIFEST_FILENAME = "xforge-manifest.json"
BUILD_ID_FILENAME = "build_id.txt"
TAR_GZ = "tar.gz"


class ProjectError(Exception):
    """Raised when a project cannot be inspected, planned or built."""


class ExecutorKind(StrEnum):
    """The tool that builds each target."""

    CARGO = "cargo"
    CROSS = "cross"
    ZIGBUILD = "zigbuild"


def executor_for(kind: ExecutorKind | str) -> BuildExecutor:
    """Return the executor that builds with the given tool."""
    try:
        kind = ExecutorKind(kind)
    except ValueError as error:
        raise ProjectError(f"unknown executor '{kind}'") from error
    match kind:
        case ExecutorKind.CARGO:
            return CargoExecutor()
        case ExecutorKind.CROSS:
            return CrossExecutor()
        case ExecutorKind.ZIGBUILD:
            return ZigbuildExecutor()


def resolve_targets(target: str | None, configured: Sequence[str]) -> list[str]:
    """Return the explicit target if given, otherwise the configured ones."""
    if target is not None:
        return [target]
    if not configured:
        raise ProjectError("no build targets configured")
    return list(configured)


def resolve_target_root(manifest_dir: str | Path) -> Path:
    """Return the nearest directory at or above manifest_dir holding Cargo.lock."""
    manifest_dir = Path(manifest_dir)
    for directory in (manifest_dir, *manifest_dir.parents):
        if (directory / "Cargo.lock").exists():
            return directory
    return manifest_dir


def package_metadata(manifest_dir: str | Path) -> tuple[str, str]:
    """Return the package name and version from the directory's Cargo.toml."""
    cargo_toml = Path(manifest_dir) / "Cargo.toml"
    try:
        contents = cargo_toml.read_text(encoding="utf-8")
    except OSError as error:
        raise ProjectError(f"failed to read Cargo.toml '{cargo_toml}': {error}") from error
    try:
        parsed = tomllib.loads(contents)
    except tomllib.TOMLDecodeError as error:
        raise ProjectError(f"failed to parse Cargo.toml: {error}") from error
    package = parsed.get("package")
    if not isinstance(package, dict):
        raise ProjectError("failed to parse Cargo.toml: missing field `package`")
    for key in ("name", "version"):
        if not isinstance(package.get(key), str):
            raise ProjectError(f"failed to parse Cargo.toml: missing field `{key}`")
    return package["name"], package["version"]


def rustc_host_triple() -> str | None:
    """Return the host triple reported by `rustc -vV`, or None if unavailable."""
    try:
        completed = subprocess.run(
            ["rustc", "-vV"], capture_output=True, check=False
        )
    except OSError:
        return None
    if completed.returncode != 0:
        return None
    stdout = completed.stdout.decode("utf-8", errors="replace")
    for line in stdout.splitlines():
        if line.startswith("host: "):
            return line.removeprefix("host: ").strip()
    return None


def resolve_library_path(
    target_root: str | Path, target: str, profile: str, file_name: str
) -> Path | None:
    """Find a built library in the profile directory or its deps directory."""
    profile_dir = Path(target_root) / "target" / target / profile
    primary = profile_dir / file_name
    if primary.exists():
        return primary
    deps_dir = profile_dir / "deps"
    exact = deps_dir / file_name
    if exact.exists():
        return exact
    wanted = Path(file_name)
    if not wanted.suffix:
        return None
    try:
        entries = sorted(deps_dir.iterdir())
    except OSError:
        return None
    for path in entries:
        if path.suffix == wanted.suffix and path.stem.startswith(wanted.stem):
            return path
    return None


def target_plan(
    manifest_dir: str | Path,
    target: str,
    profile: str,
    package_name: str,
    build_id: str,
    platform: str,
    library_name: str,
    cross_image: str | None = None,
) -> BuildTargetPlan:
    """Plan the build of one target triple into the shared target directory."""
    manifest_dir = Path(manifest_dir)
    target_root = resolve_target_root(manifest_dir)
    target_dir = target_root / "target" / target / profile
    artifact = BuiltArtifact(
        platform=platform,
        build_id=build_id,
        archive_kind=TAR_GZ,
        artifact_name=f"{package_name}-{build_id}-{platform}.{TAR_GZ}",
        output_dir=str(target_dir),
        library_path=str(target_dir / library_name),
        manifest_path=str(manifest_dir / MANIFEST_FILENAME),
        build_id_path=str(manifest_dir / BUILD_ID_FILENAME),
    )
    target_dir_arg = str(target_root / "target")
    return BuildTargetPlan(
        platform=platform,
        rust_target_triple=target,
        working_dir=str(manifest_dir),
        cargo_manifest_path="Cargo.toml",
        artifact=artifact,
        cargo_args=["--target-dir", target_dir_arg],
        cross_image=cross_image,
        env=[BuildEnvVar(key="CARGO_TARGET_DIR", value=target_dir_arg)],
    )


def build_plan(
    manifest_dir: str | Path,
    targets: Mapping[str, str],
    profile: str,
    package_name: str,
    build_id: str,
    toolchain: Toolchain | None,
    library_names: Mapping[str, str],
    cross_image: str | None = None,
) -> BuildPlan:
    """Plan a build; targets maps each triple to its platform key."""
    if not targets:
        raise ProjectError("no build targets configured")
    plans = []
    for triple, platform in targets.items():
        if not platform:
            raise ProjectError(f"unsupported target '{triple}'")
        library_name = library_names.get(triple)
        if library_name is None:
            raise ProjectError(f"no library name for target '{triple}'")
        plans.append(
            target_plan(
                manifest_dir,
                triple,
                profile,
                package_name,
                build_id,
                platform,
                library_name,
                cross_image,
            )
        )
    return BuildPlan(
        package_name=package_name,
        build_id=build_id,
        profile=BuildProfile(name=profile, toolchain=toolchain or Toolchain()),
        targets=plans,
    )


def run_build(plan: BuildPlan, kind: ExecutorKind | str) -> Path:
    """Execute the plan and return the library path of its first target."""
    if not plan.targets:
        raise ProjectError("no build targets configured")
    try:
        executor_for(kind).execute(plan)
    except BuildError as error:
        raise ProjectError(str(error)) from error
    return Path(plan.targets[0].artifact.library_path)