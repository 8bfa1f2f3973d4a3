# xforge

xforge is a Python library that plans and runs builds of a Rust crate for one
or more target triples with `cargo`, `cross` or `cargo zigbuild`, and that
signs and verifies release files with Ed25519 keys.

It needs Python 3.11 or later and depends on `cryptography`. Running a build
needs the chosen tool on the `PATH`: `cargo`; `cross`; or `cargo` with
`cargo-zigbuild` plus `zig`.

## Modules

- `xforge.builder` – the data model and the executor interface:
  `BuildPlan`, `BuildProfile`, `Toolchain`, `BuildTargetPlan`,
  `BuiltArtifact`, `BuildEnvVar`, the abstract `BuildExecutor` and
  `BuildError` (its message reads `build execution failed: ...`).
- `xforge.executors` – `CargoExecutor`, `CrossExecutor` and
  `ZigbuildExecutor`, plus the helpers `profile_args`, `build_environment`
  and `ensure_zig_available`.
- `xforge.project` – reading a crate directory and assembling a plan:
  `package_metadata`, `resolve_target_root`, `resolve_targets`,
  `rustc_host_triple`, `resolve_library_path`, `target_plan`, `build_plan`,
  `ExecutorKind`, `executor_for`, `run_build` and `ProjectError`.
- `xforge.signing` – Ed25519 keys and detached signatures:
  `generate_keypair`, `KeyPair`, `parse_private_key_hex`,
  `parse_public_key_hex`, `sign`, `verify`, `sign_file`, `verify_file` and
  `SigningError`.
- `xforge.assets` – signing a JSON release manifest and the files shipped
  with it: `sign_assets`, `collect_assets`, `sign_asset`, `dedupe_assets`,
  `SignedAssets` and `AssetError`.

## Planning and running a build

```python
from xforge.project import ExecutorKind, build_plan, package_metadata, run_build

name, version = package_metadata("path/to/crate")
triple = "x86_64-unknown-linux-gnu"
plan = build_plan(
    "path/to/crate",
    {triple: "linux-x64"},          # target triple -> platform key
    "release",
    name,
    "b1-0123abcd",                   # build id, supplied by the caller
    None,                            # or a Toolchain(channel="stable", ...)
    {triple: "libdemo.so"},          # target triple -> library file name
)
library = run_build(plan, ExecutorKind.CARGO)
```

Each target is built into `<root>/target`, where `<root>` is the nearest
directory at or above the crate that holds a `Cargo.lock`; the target gets
`--target-dir <root>/target` and `CARGO_TARGET_DIR` set to the same path.
`run_build` returns the expected library path of the first target and raises
`ProjectError` if the build fails. `ExecutorKind` has the values `cargo`,
`cross` and `zigbuild`; `executor_for` returns the matching executor.

Every executor runs one command per target, in the target's working
directory, and returns a copy of each target's `BuiltArtifact`:

- the `release` profile becomes `--release`, any other profile
  `--profile <name>`;
- `--target` and `--manifest-path` come next, then profile and target cargo
  arguments, then `--features a,b` when features are listed;
- the command's environment gains `RUSTFLAGS` (profile flags joined by
  spaces), the profile's and then the target's variables, and
  `RUSTUP_TOOLCHAIN` when the toolchain has a channel.

`CrossExecutor` adds `--image <image>` and raises `BuildError` when a target
has no `cross_image`; a missing `cross` binary is reported as
`cross is not installed`. `ZigbuildExecutor` first runs `zig version` and
raises `BuildError` if zig is missing or fails. The `command` method of each
executor returns the argument list without running it.

`resolve_library_path(target_root, triple, profile, file_name)` looks for the
library in `target/<triple>/<profile>`, then in its `deps/` directory, then
for any file in `deps/` with the same suffix whose stem starts with the
library's stem; it returns `None` if nothing is found.

## Signing and verifying files

```python
from xforge.signing import generate_keypair, sign_file, verify_file

keys = generate_keypair()
signature_path = sign_file("dist/libdemo.tar.gz", keys.private_key_hex)
assert verify_file("dist/libdemo.tar.gz", signature_path, keys.public_key_hex)
```

Without an output path the signature goes to `<file>.sig`. A private key is
64 bytes in hex – the 32-byte seed followed by its 32-byte public key – and a
public key is 32 bytes in hex. Malformed keys or signatures, a private key
whose halves do not match, and unreadable files raise `SigningError`;
`verify` and `verify_file` return `False` for a signature that does not
match.

## Signing release assets

```python
from xforge.assets import sign_assets
from xforge.signing import generate_keypair

keys = generate_keypair()
signed = sign_assets("dist/xforge-manifest.json", "dist", [], "dist", keys.private_key_hex)
```

The manifest must be a JSON object with a string `build.id`. It is signed
over its compact, key-sorted JSON form without any `signing` entry, given a
`signing` block (`algorithm`, `public_key`, `signature` in hex) and written to
the output directory (by default the manifest's own directory) with a
detached `.sig` next to it. Every regular file in the assets directory,
except existing `.sig` files, and every file passed explicitly is signed into
`<out_dir>/<name>.sig`. The result holds the build id, the signed manifest
path, the signature files written, and the assets with duplicate file names
dropped (the first of each name is kept). Failures raise `AssetError`.

## What it does not do

xforge has no command-line program. It does not compute build ids, map target
triples to platform keys or library file names (callers pass these in), pack
built libraries into archives, generate release manifests, or upload
anything to a release host.