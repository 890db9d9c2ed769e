from __future__ import annotations

"""Minimal CloudFormation template compilation for the local pipeline."""

from typing import Any, Dict, Mapping, MutableMapping, Sequence

from business_logic.console.models import FunctionDescriptor
from business_service.console.service import ConsoleService

__all__ = ["compile_template", "function_resource"]

DEPLOYMENT_BUCKET_LOGICAL_ID = "ServerlessDeploymentBucket"


def function_resource(
    function: FunctionDescriptor,
    *,
    service: str,
    stage: str,
    artifact_directory_name: str,
) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "FunctionName": f"{service}-{stage}-{function.id}",
        "Code": {
            "S3Bucket": {"Ref": DEPLOYMENT_BUCKET_LOGICAL_ID},
            "S3Key": f"{artifact_directory_name}/{service}.zip",
        },
    }
    if function.handler:
        properties["Handler"] = function.handler
    if function.runtime:
        properties["Runtime"] = function.runtime
    return {"Type": "AWS::Lambda::Function", "Properties": properties}


async def compile_template(
    console: ConsoleService,
    functions: Sequence[FunctionDescriptor],
    *,
    service: str,
    stage: str,
    artifact_directory_name: str,
) -> Dict[str, Any]:
    """
    Build the update-stack template.

    Function resources are laid out first; the Console contributions (layer resource, layer reference
    and extension environment) are added last because their variables wait on the ingestion token.
    """

    resources: Dict[str, Any] = {
        DEPLOYMENT_BUCKET_LOGICAL_ID: {"Type": "AWS::S3::Bucket"},
    }
    template: Dict[str, Any] = {
        "AWSTemplateFormatVersion": "2010-09-09",
        "Description": f"The AWS CloudFormation template for this Serverless application ({service})",
        "Resources": resources,
        "Outputs": {},
    }
    function_ids: Dict[str, str] = {}
    for function in functions:
        logical_id = console.naming.function_logical_id(function.id)
        function_ids[function.id] = logical_id
        resources[logical_id] = function_resource(
            function,
            service=service,
            stage=stage,
            artifact_directory_name=artifact_directory_name,
        )

    console.compile_extension_layer(template, artifact_directory_name)
    for function in functions:
        deferred = console.function_environment_variables(function)
        if deferred is None:
            continue
        properties = resources[function_ids[function.id]]["Properties"]
        _merge_environment(properties, await deferred)
        properties.setdefault("Layers", []).append({"Ref": console.layer_logical_id})
    return template


def _merge_environment(properties: MutableMapping[str, Any], variables: Mapping[str, str]) -> None:
    environment = properties.setdefault("Environment", {})
    environment.setdefault("Variables", {}).update(variables)
