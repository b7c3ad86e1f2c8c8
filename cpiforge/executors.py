"""Compile executor backends.

Defines the ``CompileExecutor`` Protocol the package compiler drives, plus
``ScriptCompileExecutor`` which runs a release package's ``packaging``
script locally.

The executor only produces bytes.  Storing them and recording the index entry
is the compiler's job; executors never touch the index.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from cpiforge.core.archive import extract_to, pack_directory
from cpiforge.core.blob_store import BlobStore
from cpiforge.models.release import Package

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class CompileExecutor(Protocol):
    """Protocol for package compile backends."""

    def run_compile_action(
        self, package: Package, dependency_blob_ids: dict[str, str]
    ) -> bytes:
        """Build *package* and return its packaged output.

        Parameters
        ----------
        package:
            The package to build.
        dependency_blob_ids:
            Dependency name -> blob ID of its compiled output.  Every direct
            dependency is present.

        Returns
        -------
        bytes
            The compiled package archive.  Must be deterministic for a given
            fingerprint.
        """
        ...


class CompileActionError(RuntimeError):
    """Raised when a packaging script exits non-zero."""

    def __init__(self, package: str, returncode: int, output: str) -> None:
        super().__init__(
            f"packaging script for '{package}' exited with status {returncode}"
            + (f": {output}" if output else "")
        )
        self.package = package
        self.returncode = returncode
        self.output = output


# ---------------------------------------------------------------------------
# Script executor
# ---------------------------------------------------------------------------


class ScriptCompileExecutor:
    """Runs ``<source_dir>/packaging`` with the usual BOSH environment.

    Layout inside a scratch directory::

        compile/{name}/        — copy of the package source (cwd)
        packages/{dep}/        — extracted compiled dependencies
        packages/{name}/       — BOSH_INSTALL_TARGET, packed as the result

    Parameters
    ----------
    blob_store:
        Store holding the compiled dependency blobs.
    shell:
        Interpreter used to run the packaging script.
    timeout_seconds:
        Per-package timeout; ``None`` waits indefinitely.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        *,
        shell: str = "bash",
        timeout_seconds: float | None = None,
    ) -> None:
        self._blob_store = blob_store
        self._shell = shell
        self._timeout = timeout_seconds

    def run_compile_action(
        self, package: Package, dependency_blob_ids: dict[str, str]
    ) -> bytes:
        if package.source_dir is None:
            raise CompileActionError(package.name, -1, "package has no source directory")
        script = Path(package.source_dir) / "packaging"
        if not script.is_file():
            raise CompileActionError(package.name, -1, f"missing {script}")

        with tempfile.TemporaryDirectory(prefix=f"cpiforge-{package.name}-") as scratch:
            root = Path(scratch)
            compile_dir = root / "compile" / package.name
            packages_dir = root / "packages"
            install_dir = packages_dir / package.name

            shutil.copytree(package.source_dir, compile_dir)
            install_dir.mkdir(parents=True)
            for dep_name, blob_id in sorted(dependency_blob_ids.items()):
                extract_to(self._blob_store.get(blob_id), packages_dir / dep_name)

            env = dict(os.environ)
            env.update(
                {
                    "BOSH_COMPILE_TARGET": str(compile_dir),
                    "BOSH_INSTALL_TARGET": str(install_dir),
                    "BOSH_PACKAGES_DIR": str(packages_dir),
                    "BOSH_PACKAGE_NAME": package.name,
                    "BOSH_PACKAGE_VERSION": package.version,
                }
            )

            logger.debug("Running packaging script for %s in %s", package.name, compile_dir)
            proc = subprocess.run(
                [self._shell, "packaging"],
                cwd=compile_dir,
                env=env,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
            if proc.returncode != 0:
                raise CompileActionError(
                    package.name, proc.returncode, proc.stderr.strip()[-2000:]
                )
            return pack_directory(install_dir)
