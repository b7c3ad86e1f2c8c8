"""Exception taxonomy for the deploy pipeline.

Every failure the core can raise derives from ``DeployError`` so that the CLI
boundary can map any of them to a non-zero exit status.  None of these are
retried by the core; a retry is an explicit re-invocation of ``deploy``.
"""

from __future__ import annotations


class DeployError(RuntimeError):
    """Base class for all pipeline failures."""


# ---------------------------------------------------------------------------
# Store and index
# ---------------------------------------------------------------------------


class StoreWriteError(DeployError):
    """Raised when a blob or index document cannot be persisted."""


class BlobNotFoundError(DeployError):
    """Raised when a blob ID has no stored content."""

    def __init__(self, blob_id: str) -> None:
        super().__init__(f"Blob not found: {blob_id}")
        self.blob_id = blob_id


class IntegrityError(DeployError):
    """Raised when stored blob content no longer matches its digest."""

    def __init__(self, blob_id: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Blob {blob_id} failed integrity check "
            f"(expected sha256 {expected}, got {actual})"
        )
        self.blob_id = blob_id
        self.expected = expected
        self.actual = actual


class IndexLoadError(DeployError):
    """Raised when a persisted index document cannot be parsed."""


class IndexConsistencyError(DeployError):
    """Raised when a key is recorded twice with different content.

    This always points at a fingerprinting defect: the same fingerprint
    produced different bytes.  It is never resolved by overwriting.
    """

    def __init__(self, index_name: str, key: object, existing: object, incoming: object) -> None:
        super().__init__(
            f"{index_name}: conflicting record for {key}: "
            f"existing {existing}, incoming {incoming}"
        )
        self.key = key
        self.existing = existing
        self.incoming = incoming


# ---------------------------------------------------------------------------
# Dependency graph and compilation
# ---------------------------------------------------------------------------


class GraphError(DeployError):
    """Base class for malformed package graphs."""


class DependencyCycleError(GraphError):
    """Raised when the package dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle)}")
        self.cycle = cycle


class UnknownDependencyError(GraphError):
    """Raised when a package depends on a name the release does not contain."""

    def __init__(self, package: str, dependency: str) -> None:
        super().__init__(
            f"Package '{package}' depends on unknown package '{dependency}'"
        )
        self.package = package
        self.dependency = dependency


class CompilationError(DeployError):
    """Raised when compiling a package fails."""

    def __init__(self, package: str, cause: BaseException) -> None:
        super().__init__(f"Compiling package '{package}' failed: {cause}")
        self.package = package
        self.cause = cause


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class UnresolvedPropertyError(DeployError):
    """Raised when a template references a property with no value."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Property '{path}' has no default and no override")
        self.path = path


class RenderError(DeployError):
    """Raised when rendering one of a job's template files fails."""

    def __init__(self, job: str, template_file: str, cause: BaseException) -> None:
        super().__init__(
            f"Rendering job '{job}' template '{template_file}' failed: {cause}"
        )
        self.job = job
        self.template_file = template_file
        self.cause = cause


# ---------------------------------------------------------------------------
# Release, manifest, collaborators
# ---------------------------------------------------------------------------


class ReleaseInvalidError(DeployError):
    """Raised when a release cannot be deployed as a CPI release."""

    def __init__(self, release: str, reason: str = "") -> None:
        message = f"release '{release}' is not a valid CPI release"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.release = release
        self.reason = reason


class ReleaseLoadError(DeployError):
    """Raised when a release directory cannot be read."""


class ManifestLoadError(DeployError):
    """Raised when a deployment manifest cannot be read."""


class DeploymentNotSetError(DeployError):
    """Raised when ``deploy`` runs before a deployment manifest is set."""


class WorkspaceError(DeployError):
    """Raised when a workspace descriptor cannot be read or written."""


class WorkspaceNotFoundError(WorkspaceError):
    """Raised when a workspace is loaded without creating it and none exists."""
