"""Template renderer — renders job templates into a cached, packaged blob.

Templates reference properties with ERB-style tags::

    GLOBAL_PROPERTY="<%= p('fake_cpi_default_property') %>"
    IP="<%= p('network.ip') %>"
    PORT=<%= p('port', 8080) %>

A referenced path with no value and no inline fallback is a hard failure
(``UnresolvedPropertyError``), never a blank substitution.

The rendered-template index is keyed by ``(job name, render fingerprint)``.
The render fingerprint covers the job fingerprint, the non-network property
tree, the shape of the ``network`` subtree and the literal values of those
network paths the templates actually reference.  Two deployments that differ
only in network values no template uses therefore share a cache entry.
"""

from __future__ import annotations

import ast
import json
import logging
import re
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from cpiforge.core.archive import pack_files
from cpiforge.core.blob_store import BlobStore
from cpiforge.core.errors import DeployError, RenderError, UnresolvedPropertyError
from cpiforge.core.hasher import compute_render_fingerprint
from cpiforge.core.index import ArtifactIndex
from cpiforge.core.package_compiler import ProgressReporter
from cpiforge.core.property_resolver import NETWORK_ROOT, lookup_path
from cpiforge.models.index import IndexKey, IndexValue
from cpiforge.models.release import Job

logger = logging.getLogger(__name__)

STAGE_NAME = "rendering job templates"

_TAG = re.compile(r"<%=\s*p\((?P<args>.*?)\)\s*%>", re.DOTALL)
_NO_FALLBACK = object()


# ---------------------------------------------------------------------------
# Template text
# ---------------------------------------------------------------------------


def _parse_args(raw: str) -> tuple[str, Any]:
    try:
        args = ast.literal_eval(f"({raw},)")
    except (ValueError, SyntaxError) as exc:
        raise ValueError(f"malformed property reference p({raw})") from exc
    if not args or not isinstance(args[0], str) or len(args) > 2:
        raise ValueError(f"malformed property reference p({raw})")
    return args[0], (args[1] if len(args) == 2 else _NO_FALLBACK)


def format_value(value: Any) -> str:
    """Render a property value the way it appears in generated files."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def referenced_paths(source: str) -> list[str]:
    """Return every property path a template references, in order."""
    return [_parse_args(match.group("args"))[0] for match in _TAG.finditer(source)]


def render_text(source: str, properties: Mapping[str, Any]) -> str:
    """Substitute every ``<%= p(...) %>`` tag in *source*."""

    def _substitute(match: re.Match[str]) -> str:
        path, fallback = _parse_args(match.group("args"))
        try:
            value = lookup_path(properties, path)
        except KeyError:
            if fallback is _NO_FALLBACK:
                raise UnresolvedPropertyError(path) from None
            value = fallback
        return format_value(value)

    return _TAG.sub(_substitute, source)


def _shape(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _shape(child) for key, child in value.items()}
    return type(value).__name__


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders jobs against resolved property trees, once per fingerprint.

    Parameters
    ----------
    blob_store:
        The workspace's blob store.
    index:
        The workspace's rendered-template index.
    max_workers:
        Upper bound on jobs rendered concurrently by ``render_all``.
    reporter:
        Optional progress callback.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        index: ArtifactIndex,
        *,
        max_workers: int = 4,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self._blob_store = blob_store
        self._index = index
        self._max_workers = max(1, max_workers)
        self._reporter = reporter

    def _report(self, name: str, event: str) -> None:
        if self._reporter is not None:
            self._reporter(STAGE_NAME, name, event)

    def fingerprint(self, job: Job, properties: Mapping[str, Any]) -> str:
        """Return the render fingerprint of *job* against *properties*."""
        network = properties.get(NETWORK_ROOT, {})
        rest = {key: value for key, value in properties.items() if key != NETWORK_ROOT}

        referenced: dict[str, Any] = {}
        for path, source in sorted(job.templates.items()):
            try:
                paths = referenced_paths(source)
            except ValueError as exc:
                raise RenderError(job.name, path, exc) from exc
            for ref in paths:
                if ref == NETWORK_ROOT or ref.startswith(f"{NETWORK_ROOT}."):
                    referenced[ref] = lookup_path(properties, ref, None)

        return compute_render_fingerprint(job.fingerprint, rest, _shape(network), referenced)

    def render(self, job: Job, properties: Mapping[str, Any]) -> str:
        """Render *job* and return the blob ID of the packaged output."""
        key = IndexKey(name=job.name, fingerprint=self.fingerprint(job, properties))
        hit = self._index.lookup(key)
        if hit is not None:
            logger.debug("Job %s is already rendered (%s)", job.name, hit.blob_id)
            self._report(job.name, "cached")
            return hit.blob_id

        self._report(job.name, "started")
        try:
            files: dict[str, bytes] = {}
            for path, source in sorted(job.templates.items()):
                try:
                    files[path] = render_text(source, properties).encode("utf-8")
                except (UnresolvedPropertyError, ValueError) as exc:
                    raise RenderError(job.name, path, exc) from exc
            value = self._store(key, pack_files(files))
        except DeployError:
            self._report(job.name, "failed")
            raise

        logger.info("Rendered job %s -> blob %s", job.name, value.blob_id)
        self._report(job.name, "done")
        return value.blob_id

    def render_all(self, items: Iterable[tuple[Job, Mapping[str, Any]]]) -> dict[str, str]:
        """Render independent jobs concurrently; return ``job name -> blob_id``.

        Every job is attempted; the first failure (by job name) is raised
        after all of them finish.
        """
        items = list(items)
        results: dict[str, str] = {}
        errors: dict[str, DeployError] = {}
        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, max(1, len(items))),
            thread_name_prefix="cpiforge-render",
        ) as pool:
            futures = {pool.submit(self.render, job, props): job.name for job, props in items}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    results[name] = future.result()
                except DeployError as exc:
                    errors[name] = exc
        if errors:
            raise errors[min(errors)]
        return dict(sorted(results.items()))

    def _store(self, key: IndexKey, data: bytes) -> IndexValue:
        stored = self._blob_store.put(data)
        value = IndexValue(blob_id=stored.blob_id, digest=stored.digest)
        try:
            winner = self._index.record(key, value)
        except DeployError:
            self._blob_store.discard(stored.blob_id)
            raise
        if winner.blob_id != stored.blob_id:
            self._blob_store.discard(stored.blob_id)
        return winner
