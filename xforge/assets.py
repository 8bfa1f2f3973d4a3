"""Signing a release manifest and the assets published alongside it."""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from xforge.signing import SigningError, parse_private_key_hex, sign

DEFAULT_MANIFEST_FILENAME = "xforge-manifest.json"
SIGNING_ALGORITHM = "ed25519"
SIGNATURE_SUFFIX = ".sig"


class AssetError(Exception):
    """Raised when release assets cannot be collected or signed."""


@dataclass
class SignedAssets:
    """The outcome of signing a manifest and its release assets."""

    build_id: str
    signed_manifest_path: Path
    signed_files: list[Path] = field(default_factory=list)
    assets: list[Path] = field(default_factory=list)


def _signing_payload(manifest: dict[str, Any]) -> bytes:
    unsigned = {key: value for key, value in manifest.items() if key != "signing"}
    return json.dumps(unsigned, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _load_manifest(path: Path) -> dict[str, Any]:
    try:
        contents = path.read_text(encoding="utf-8")
    except OSError as error:
        raise AssetError(f"failed to read manifest '{path}': {error}") from error
    try:
        manifest = json.loads(contents)
    except json.JSONDecodeError as error:
        raise AssetError(f"failed to parse manifest: {error}") from error
    if not isinstance(manifest, dict):
        raise AssetError("failed to parse manifest: expected a JSON object")
    build = manifest.get("build")
    if not isinstance(build, dict) or not isinstance(build.get("id"), str):
        raise AssetError("failed to parse manifest: missing field `build.id`")
    return manifest


def _write(path: Path, data: bytes, what: str) -> None:
    try:
        path.write_bytes(data)
    except OSError as error:
        raise AssetError(f"failed to write {what} '{path}': {error}") from error


def collect_assets(
    directory: str | Path | None, files: Iterable[str | Path] = ()
) -> list[Path]:
    """Return the regular non-signature files of a directory, then the given files."""
    assets: list[Path] = []
    if directory is not None:
        directory = Path(directory)
        try:
            entries = sorted(directory.iterdir())
        except OSError as error:
            raise AssetError(
                f"failed to read assets dir '{directory}': {error}"
            ) from error
        assets.extend(
            path
            for path in entries
            if path.is_file() and not str(path).endswith(SIGNATURE_SUFFIX)
        )
    assets.extend(Path(file) for file in files)
    return assets


def sign_asset(path: str | Path, out_dir: str | Path, private_key: bytes) -> Path:
    """Write `<out_dir>/<name>.sig` holding the signature of the file's bytes."""
    path = Path(path)
    try:
        payload = path.read_bytes()
    except OSError as error:
        raise AssetError(f"failed to read asset '{path}': {error}") from error
    try:
        signature = sign(private_key, payload)
    except SigningError as error:
        raise AssetError(str(error)) from error
    if not path.name:
        raise AssetError(f"invalid asset filename '{path}'")
    sig_path = Path(out_dir) / f"{path.name}{SIGNATURE_SUFFIX}"
    _write(sig_path, signature, "signature")
    return sig_path


def dedupe_assets(paths: Iterable[str | Path]) -> list[Path]:
    """Keep the first path for each file name, rejecting paths with no name."""
    by_name: dict[str, Path] = {}
    for raw in paths:
        path = Path(raw)
        if not path.name:
            raise AssetError(f"invalid asset path '{path}'")
        by_name.setdefault(path.name, path)
    return list(by_name.values())


def sign_assets(
    manifest_path: str | Path,
    assets_dir: str | Path | None,
    asset_files: Sequence[str | Path],
    out_dir: str | Path | None,
    private_key_hex: str,
) -> SignedAssets:
    """Sign the manifest and every asset, writing signatures into out_dir.

    The manifest gains a signing block and is written to out_dir under its
    own file name, with a detached signature next to it. out_dir defaults to
    the manifest's directory.
    """
    manifest_path = Path(manifest_path)
    manifest = _load_manifest(manifest_path)
    build_id = manifest["build"]["id"]

    try:
        private_key = parse_private_key_hex(private_key_hex)
        signature = sign(private_key, _signing_payload(manifest))
    except SigningError as error:
        raise AssetError(str(error)) from error
    public_key = private_key[32:]

    manifest["signing"] = {
        "algorithm": SIGNING_ALGORITHM,
        "public_key": public_key.hex(),
        "signature": signature.hex(),
    }

    target_dir = Path(out_dir) if out_dir is not None else manifest_path.parent
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise AssetError(f"failed to create out dir '{target_dir}': {error}") from error

    manifest_filename = manifest_path.name or DEFAULT_MANIFEST_FILENAME
    signed_manifest_path = target_dir / manifest_filename
    _write(
        signed_manifest_path,
        json.dumps(manifest, indent=2).encode("utf-8"),
        "signed manifest",
    )
    manifest_sig_path = target_dir / f"{manifest_filename}{SIGNATURE_SUFFIX}"
    _write(manifest_sig_path, signature, "manifest signature")

    signed_files = [signed_manifest_path, manifest_sig_path]
    assets = [signed_manifest_path, manifest_sig_path]
    for asset in collect_assets(assets_dir, asset_files):
        sig_path = sign_asset(asset, target_dir, private_key)
        signed_files.append(sig_path)
        assets.extend((asset, sig_path))

    return SignedAssets(
        build_id=build_id,
        signed_manifest_path=signed_manifest_path,
        signed_files=signed_files,
        assets=dedupe_assets(assets),
    )