"""cpiforge: compile-and-render pipeline for CPI releases.

Turns a CPI release and a deployment manifest into a reproducible deployment
workspace:
  - release validation before any side effect
  - dependency-ordered package compilation, cached by fingerprint
  - property merging (release defaults < manifest overrides < network values)
  - job template rendering, cached by fingerprint
  - content-digest-verified blob store with persisted JSON indices
"""

__version__ = "0.1.0"
__description__ = "Compile-and-render pipeline for CPI releases"

from cpiforge.core.deployer import Deployer, DeployResult
from cpiforge.core.workspace import DeploymentWorkspace

__all__ = ["Deployer", "DeployResult", "DeploymentWorkspace", "__version__"]
