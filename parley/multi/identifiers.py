"""Workflow identifiers.

Workflow id format:   ``<tenant>:<agent>:<flow>[:<postfix>]``
Workflow type format: ``<agent>:<flow>``

The singleton workflow id for a type is ``<tenant>:<type>``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from parley.utils.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TENANT_ID = "default"


@dataclass(frozen=True)
class WorkflowIdentifier:
    workflow_id: str
    workflow_type: str
    agent_name: str

    @classmethod
    def parse(cls, identifier: str, tenant_id: str = DEFAULT_TENANT_ID) -> "WorkflowIdentifier":
        """Build from either a workflow id or a workflow type."""
        if not identifier:
            raise ValidationError("Workflow identifier is required")

        if identifier.count(":") >= 2:
            if not identifier.startswith(f"{tenant_id}:"):
                raise ValidationError(
                    f"Invalid workflow identifier `{identifier}`. Expected to start with tenant id `{tenant_id}`"
                )
            workflow_type = cls.get_workflow_type(identifier)
            return cls(
                workflow_id=identifier,
                workflow_type=workflow_type,
                agent_name=cls.get_agent_name(workflow_type),
            )

        return cls(
            workflow_id=cls.get_workflow_id(identifier, tenant_id),
            workflow_type=cls.get_workflow_type(identifier),
            agent_name=cls.get_agent_name(identifier),
        )

    @staticmethod
    def get_workflow_id(workflow_type: str, tenant_id: str = DEFAULT_TENANT_ID) -> str:
        return f"{tenant_id}:{workflow_type}"

    @staticmethod
    def get_workflow_type(workflow: str) -> str:
        colons = workflow.count(":")
        if colons == 1:
            return workflow
        if colons >= 2:
            parts = workflow.split(":")
            return f"{parts[1]}:{parts[2]}"
        raise ValidationError(f"Invalid workflow identifier `{workflow}`. Expected to have at least 1 `:`")

    @staticmethod
    def get_agent_name(workflow: str) -> str:
        colons = workflow.count(":")
        if colons == 1:
            return workflow.split(":")[0]
        if colons >= 2:
            return workflow.split(":")[1]
        raise ValidationError(f"Invalid workflow identifier `{workflow}`. Expected to have at least 1 `:`")

    @staticmethod
    def workflow_id_for(workflow_type: str, tenant_id: str = DEFAULT_TENANT_ID, postfix: Optional[str] = None) -> str:
        base = f"{tenant_id}:{workflow_type}"
        return f"{base}:{postfix}" if postfix else base
