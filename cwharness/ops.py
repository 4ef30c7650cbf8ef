"""Workspace-level contract build operations."""

import logging
from pathlib import Path

from cwharness.config import settings
from cwharness.shell import Command

logger = logging.getLogger(__name__)

OPTIMIZER_IMAGE = "cosmwasm/workspace-optimizer:0.14.0"


def dist_workspace(cwd: Path | None = None) -> Path:
    """Build and optimize every contract crate of the workspace at ``cwd``.

    Uses the ``cosmwasm/workspace-optimizer`` image. Artifacts land in
    ``settings.artifacts_dir`` (``COSMWASM_ARTIFACTS_DIR``), relative to the
    workspace unless absolute.

    Returns:
        The artifacts directory.
    """
    workspace = (cwd or Path.cwd()).resolve()
    artifacts = workspace / settings.artifacts_dir
    artifacts.mkdir(parents=True, exist_ok=True)

    logger.info("optimizing contracts in %s", workspace)
    Command.of(
        settings.docker_bin, "run", "--rm",
        "-v", f"{workspace}:/code",
        "--mount", f"type=volume,source={workspace.name}_cache,target=/code/target",
        "--mount", "type=volume,source=registry_cache,target=/usr/local/cargo/registry",
        OPTIMIZER_IMAGE,
    ).run()

    return artifacts
