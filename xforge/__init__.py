"""Build planning and execution for Rust crates, and Ed25519 signing of release files."""

__version__ = "0.1.0"

__all__ = ["assets", "builder", "executors", "project", "signing"]