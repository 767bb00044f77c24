"""Resource operations: reads, deploy and instance lifecycle."""

from .client import ControlPlaneClient, choose_terminate_operation
from .deploy import (
    DeploySchema,
    ProfileSchema,
    SchemaError,
    build_deploy_request,
    select_schema,
)
from .urls import instance_page_url, instance_url, page_url, resource_id

__all__ = [
    "ControlPlaneClient",
    "DeploySchema",
    "ProfileSchema",
    "SchemaError",
    "build_deploy_request",
    "choose_terminate_operation",
    "instance_page_url",
    "instance_url",
    "page_url",
    "resource_id",
    "select_schema",
]
