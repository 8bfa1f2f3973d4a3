"""Build plans and the interface that build executors implement."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class BuildError(Exception):
    """Raised when a build plan cannot be executed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"build execution failed: {self.message}"


@dataclass(kw_only=True)
class BuildEnvVar:
    """An environment variable set for a build command."""

    key: str
    value: str


@dataclass(kw_only=True)
class Toolchain:
    """The Rust toolchain a build runs with."""

    channel: str | None = None
    targets: list[str] = field(default_factory=list)
    components: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class BuildProfile:
    """Profile-wide settings shared by every target of a plan."""

    name: str
    toolchain: Toolchain = field(default_factory=Toolchain)
    cargo_args: list[str] = field(default_factory=list)
    rustflags: list[str] = field(default_factory=list)
    env: list[BuildEnvVar] = field(default_factory=list)


@dataclass(kw_only=True)
class BuiltArtifact:
    """Describes the artifact a target produces once built."""

    platform: str
    build_id: str
    archive_kind: str
    artifact_name: str
    output_dir: str
    library_path: str
    manifest_path: str
    build_id_path: str
    include_dir: str | None = None


@dataclass(kw_only=True)
class BuildTargetPlan:
    """How to build one target triple."""

    platform: str
    rust_target_triple: str
    working_dir: str
    cargo_manifest_path: str
    artifact: BuiltArtifact
    cargo_args: list[str] = field(default_factory=list)
    cargo_features: list[str] = field(default_factory=list)
    cross_image: str | None = None
    env: list[BuildEnvVar] = field(default_factory=list)


@dataclass(kw_only=True)
class BuildPlan:
    """A package build across one or more targets."""

    package_name: str
    build_id: str
    profile: BuildProfile
    targets: list[BuildTargetPlan] = field(default_factory=list)


class BuildExecutor(ABC):
    """Runs a build plan and returns the artifacts it produced."""

    @abstractmethod
    def execute(self, plan: BuildPlan) -> list[BuiltArtifact]:
        """Build every target of the plan, in order."""