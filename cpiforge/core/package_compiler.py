"""Package compiler — dependency-ordered, fingerprint-cached compilation.

For each package in topological order the compiled-package index is
consulted first.  A hit reuses the recorded blob and has no other side
effect.  A miss runs the external compile action, stores the output and
records ``(name, fingerprint) -> (blob_id, digest)``.

Independent packages compile concurrently on a bounded thread pool.  A
package is submitted only once every one of its dependencies has a recorded
blob ID.  With a single worker, packages start in exactly the topological
order.

On failure no new packages are started, in-flight compiles are allowed to
finish (their records stay valid for a retry) and the first
``CompilationError`` is raised.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from pydantic import BaseModel, ConfigDict

from cpiforge.core.blob_store import BlobStore
from cpiforge.core.dependency_graph import PackageGraph
from cpiforge.core.errors import CompilationError, DeployError
from cpiforge.core.index import ArtifactIndex
from cpiforge.executors import CompileExecutor
from cpiforge.models.index import IndexKey, IndexValue

logger = logging.getLogger(__name__)

STAGE_NAME = "compiling packages"

# (stage, item, event) with event in {"started", "done", "cached", "failed"}
ProgressReporter = Callable[[str, str, str], None]


class CompileResult(BaseModel):
    """Outcome of one ``compile_detailed`` call."""

    model_config = ConfigDict(frozen=True)

    blob_ids: dict[str, str]
    compiled: list[str]  # in start order
    cached: list[str]


class PackageCompiler:
    """Compiles a ``PackageGraph`` into blobs, at most once per fingerprint.

    Parameters
    ----------
    blob_store:
        The workspace's blob store.
    index:
        The workspace's compiled-package index.
    executor:
        Backend that runs a package's build.
    max_workers:
        Upper bound on concurrent compile actions.
    reporter:
        Optional progress callback.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        index: ArtifactIndex,
        executor: CompileExecutor,
        *,
        max_workers: int = 4,
        reporter: ProgressReporter | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._blob_store = blob_store
        self._index = index
        self._executor = executor
        self._max_workers = max_workers
        self._reporter = reporter

    def _report(self, name: str, event: str) -> None:
        if self._reporter is not None:
            self._reporter(STAGE_NAME, name, event)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def compile(self, graph: PackageGraph) -> dict[str, str]:
        """Compile every package and return ``name -> blob_id``."""
        return self.compile_detailed(graph).blob_ids

    def compile_detailed(self, graph: PackageGraph) -> CompileResult:
        """Compile every package, reporting which ones hit the cache."""
        pending = graph.topological_order()
        blob_ids: dict[str, str] = {}
        compiled: list[str] = []
        cached: list[str] = []
        failure: DeployError | None = None

        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="cpiforge-compile"
        ) as pool:
            futures: dict[Future[IndexValue], str] = {}

            def schedule() -> None:
                progressed = True
                while progressed:
                    progressed = False
                    for name in pending:
                        if any(dep not in blob_ids for dep in graph.get_dependencies(name)):
                            continue
                        hit = self._index.lookup(self._key(graph, name))
                        if hit is not None:
                            pending.remove(name)
                            blob_ids[name] = hit.blob_id
                            cached.append(name)
                            logger.debug("Package %s is already compiled (%s)", name, hit.blob_id)
                            self._report(name, "cached")
                            progressed = True
                            break
                        if len(futures) >= self._max_workers:
                            return
                        pending.remove(name)
                        dependency_ids = {
                            dep: blob_ids[dep] for dep in graph.get_dependencies(name)
                        }
                        compiled.append(name)
                        self._report(name, "started")
                        futures[pool.submit(self._compile_one, graph, name, dependency_ids)] = name
                        progressed = True
                        break

            while True:
                if failure is None:
                    schedule()
                if not futures:
                    break
                finished, _ = wait(futures, return_when=FIRST_COMPLETED)
                for future in finished:
                    name = futures.pop(future)
                    try:
                        value = future.result()
                    except DeployError as exc:
                        self._report(name, "failed")
                        skipped = [dep for dep in graph.get_dependents(name) if dep in pending]
                        if skipped:
                            logger.error(
                                "Package %s failed; not compiling its dependents: %s",
                                name,
                                ", ".join(skipped),
                            )
                        if failure is None:
                            failure = exc
                        continue
                    blob_ids[name] = value.blob_id
                    self._report(name, "done")

        if failure is not None:
            raise failure
        if pending:
            # Unreachable for a validated graph.
            raise CompilationError(pending[0], RuntimeError("dependencies never compiled"))

        return CompileResult(blob_ids=blob_ids, compiled=compiled, cached=cached)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _key(graph: PackageGraph, name: str) -> IndexKey:
        return IndexKey(name=name, fingerprint=graph.fingerprint(name))

    def _compile_one(
        self, graph: PackageGraph, name: str, dependency_ids: dict[str, str]
    ) -> IndexValue:
        """Run one compile action, store the output and record it."""
        package = graph.get_package(name)
        key = self._key(graph, name)
        logger.info("Compiling package %s/%s", name, key.fingerprint[:12])

        try:
            output = self._executor.run_compile_action(package, dependency_ids)
        except Exception as exc:
            raise CompilationError(name, exc) from exc

        stored = self._blob_store.put(output)
        value = IndexValue(blob_id=stored.blob_id, digest=stored.digest)
        try:
            winner = self._index.record(key, value)
        except DeployError:
            self._blob_store.discard(stored.blob_id)
            raise
        if winner.blob_id != stored.blob_id:
            self._blob_store.discard(stored.blob_id)
        logger.info("Compiled package %s -> blob %s", name, winner.blob_id)
        return winner
