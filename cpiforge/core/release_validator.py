"""Release validator — fails fast before any compile or render side effect."""

from __future__ import annotations

import logging

from cpiforge.collaborators import Release
from cpiforge.core.errors import ReleaseInvalidError

logger = logging.getLogger(__name__)

DEFAULT_CPI_JOB_NAME = "cpi"


class ReleaseValidator:
    """Checks that a release can be deployed as a CPI release.

    A release is rejected with ``ReleaseInvalidError`` when:

    - it has no job named ``cpi_job_name``;
    - a job uses a package the release does not ship.

    A malformed package graph is reported with its own error
    (``DependencyCycleError``, ``UnknownDependencyError``), unchanged.

    Parameters
    ----------
    cpi_job_name:
        Name of the job implementing the infrastructure interface.
    """

    def __init__(self, cpi_job_name: str = DEFAULT_CPI_JOB_NAME) -> None:
        self.cpi_job_name = cpi_job_name

    def validate(self, release: Release) -> None:
        """Raise if *release* is not deployable."""
        jobs = {job.name: job for job in release.jobs()}
        if self.cpi_job_name not in jobs:
            logger.error(
                "Release %s has no '%s' job (jobs: %s)",
                release.name,
                self.cpi_job_name,
                ", ".join(sorted(jobs)) or "none",
            )
            raise ReleaseInvalidError(
                release.name, f"missing job '{self.cpi_job_name}'"
            )

        graph = release.packages()
        for job in jobs.values():
            missing = sorted(set(job.packages) - set(graph.names))
            if missing:
                raise ReleaseInvalidError(
                    release.name,
                    f"job '{job.name}' uses unknown packages: {', '.join(missing)}",
                )
