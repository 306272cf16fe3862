"""
approval_config -- single public entrypoint for workflow configuration.

Responsibility:
    Turns YAML workflow documents into validated kernel
    ``WorkflowDefinition`` objects through ``load_workflow_set()``, and
    reads engine settings from the environment (``EngineSettings``).

Architecture position:
    Configuration -- sits above ``approval_kernel`` and below
    ``approval_services``.  The kernel MUST NEVER import from
    ``approval_config``; ``bridges`` translates schema objects into
    kernel inputs.

Invariants enforced:
    - Pipeline order: load -> migrate legacy shape -> parse -> validate ->
      bridge.  Nothing reaches the kernel without passing validation.
    - Deterministic: the same document always yields the same checksum
      and the same workflow ids.

Failure modes:
    - ``FileNotFoundError`` -- the YAML file does not exist.
    - ``yaml.YAMLError`` -- malformed YAML.
    - ``WorkflowValidationError`` -- the set has validation errors; all of
      them are listed in ``errors``.

Audit relevance:
    Every successful ``load_workflow_set()`` call emits an
    ``APPROVAL_CONFIG_TRACE`` log entry with the set name, version,
    checksum and workflow count.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from approval_config.bridges import build_workflow
from approval_config.loader import load_workflow_set_def
from approval_config.settings import EngineSettings
from approval_config.validator import WorkflowValidationResult, validate_workflow_set
from approval_kernel.domain.workflow import WorkflowDefinition
from approval_kernel.exceptions import WorkflowValidationError
from approval_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_WORKFLOWS_DIR = Path(__file__).parent / "workflows"
DEFAULT_WORKFLOW_FILE = DEFAULT_WORKFLOWS_DIR / "default.yaml"


@dataclass(frozen=True)
class LoadedWorkflowSet:
    """Kernel-ready workflows of one YAML document."""

    name: str
    version: int
    checksum: str
    workflows: tuple[WorkflowDefinition, ...]
    warnings: tuple[str, ...] = ()
    migrated_from_legacy: bool = False


def load_workflow_set(
    path: Path | str = DEFAULT_WORKFLOW_FILE,
    organization_id: UUID | None = None,
    created_by: UUID | None = None,
) -> LoadedWorkflowSet:
    """Load, validate and bridge a YAML workflow document.

    Args:
        path: YAML file to load.
        organization_id: Assigns every workflow to this organization,
            overriding the document.  Required for organization-neutral
            templates such as the bundled ``default.yaml``.
        created_by: Recorded as the author of every definition.

    Raises:
        WorkflowValidationError: The document has validation errors.
    """
    workflow_set = load_workflow_set_def(Path(path))
    result = validate_workflow_set(workflow_set, organization_id=organization_id)
    if not result.is_valid:
        _logger.warning(
            "workflow_set_invalid",
            extra={"path": str(path), "errors": result.errors},
        )
        raise WorkflowValidationError(result.errors, workflow_name=workflow_set.name)

    for warning in result.warnings:
        _logger.warning("workflow_set_warning", extra={"path": str(path), "warning": warning})

    workflows = tuple(
        build_workflow(w, organization_id=organization_id, created_by=created_by)
        for w in workflow_set.workflows
    )

    _logger.info(
        "APPROVAL_CONFIG_TRACE",
        extra={
            "trace_type": "APPROVAL_CONFIG_TRACE",
            "workflow_set": workflow_set.name,
            "version": workflow_set.version,
            "checksum": workflow_set.checksum,
            "workflow_count": len(workflows),
            "migrated_from_legacy": workflow_set.migrated_from_legacy,
        },
    )
    return LoadedWorkflowSet(
        name=workflow_set.name,
        version=workflow_set.version,
        checksum=workflow_set.checksum,
        workflows=workflows,
        warnings=tuple(result.warnings),
        migrated_from_legacy=workflow_set.migrated_from_legacy,
    )


__all__ = [
    "DEFAULT_WORKFLOW_FILE",
    "EngineSettings",
    "LoadedWorkflowSet",
    "WorkflowValidationResult",
    "load_workflow_set",
    "validate_workflow_set",
]
