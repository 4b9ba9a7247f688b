"""
Builds - Azure DevOps artifact download and build queuing.
"""

from __future__ import annotations

import logging
import tempfile
import time
import zipfile
from pathlib import Path
from typing import Any

from issuebridge.adapters.azure_devops.client import AzureDevOpsApiClient
from issuebridge.core.cancellation import CancellationToken, check_cancelled
from issuebridge.core.domain.entities import ArtifactInfo, BuildInfo, QueuedBuild
from issuebridge.core.exceptions import (
    ArtifactNotFoundError,
    BuildFailedError,
    BuildNotFoundError,
    TrackerError,
)


logger = logging.getLogger("Builds")

CHUNK_SIZE = 64 * 1024


def _to_build_info(build: dict[str, Any]) -> BuildInfo:
    return BuildInfo(
        id=build["id"],
        build_number=build.get("buildNumber", ""),
        definition=build.get("definition", {}).get("name", ""),
        status=build.get("status"),
        result=build.get("result"),
        url=build.get("_links", {}).get("web", {}).get("href"),
    )


def find_definition(
    client: AzureDevOpsApiClient,
    project: str,
    build_definition: str,
) -> dict[str, Any]:
    """
    Find a build definition by name, case-insensitively.

    Raises:
        BuildNotFoundError: If no definition has that name.
    """
    for definition in client.get_build_definitions(name=build_definition, project=project):
        if definition.get("name", "").casefold() == build_definition.casefold():
            return definition
    raise BuildNotFoundError(
        f"Build definition '{build_definition}' not found in project '{project}'",
        definition=build_definition,
    )


def find_build(
    client: AzureDevOpsApiClient,
    project: str,
    build_definition: str,
    build_number: str | None = None,
    cancel_token: CancellationToken | None = None,
) -> BuildInfo:
    """
    Find a build of a definition; the most recent one when no number is given.

    Raises:
        BuildNotFoundError: If the definition or build does not exist.
    """
    definition = find_definition(client, project, build_definition)
    for build in client.iter_builds(project, definition["id"], cancel_token):
        if not build_number or build.get("buildNumber", "").casefold() == build_number.casefold():
            return _to_build_info(build)

    raise BuildNotFoundError(
        f"Build {build_number or '(latest)'} of '{build_definition}' not found.",
        definition=build_definition,
        build_number=build_number,
    )


def find_artifact(
    client: AzureDevOpsApiClient,
    project: str,
    build: BuildInfo,
    artifact_name: str,
) -> ArtifactInfo:
    """
    Find an artifact of a build by name, case-insensitively.

    Raises:
        ArtifactNotFoundError: If the build has no such artifact.
    """
    for artifact in client.get_build_artifacts(build.id, project):
        if artifact.get("name", "").casefold() == artifact_name.casefold():
            return ArtifactInfo(
                name=artifact["name"],
                download_url=artifact.get("resource", {}).get("downloadUrl", ""),
                build_id=build.id,
            )
    raise ArtifactNotFoundError(
        f"Artifact {artifact_name} not found on build {build.build_number}.",
        artifact_name=artifact_name,
        build_number=build.build_number,
    )


def download_artifact(
    client: AzureDevOpsApiClient,
    project: str,
    build_definition: str,
    artifact_name: str,
    target_directory: str | Path,
    build_number: str | None = None,
    extract: bool = True,
    cancel_token: CancellationToken | None = None,
) -> Path:
    """
    Download a build artifact.

    The artifact zip is either extracted into ``target_directory`` or saved
    there as ``<artifact_name>.zip``.

    Returns:
        The directory the files were extracted to, or the saved zip path.

    Raises:
        BuildNotFoundError: If the build does not exist.
        ArtifactNotFoundError: If the build has no such artifact.
    """
    build = find_build(client, project, build_definition, build_number, cancel_token)
    artifact = find_artifact(client, project, build, artifact_name)
    if not artifact.download_url:
        raise TrackerError(f"Artifact {artifact.name} of build {build.build_number} has no download URL")

    target = Path(target_directory)
    target.mkdir(parents=True, exist_ok=True)

    logger.info(f"Downloading artifact {artifact.name} of build {build.build_number}")
    response = client.download(artifact.download_url)
    try:
        if extract:
            logger.debug(f"Extracting artifact files to: {target}")
            with tempfile.TemporaryFile() as buffer:
                _copy_stream(response, buffer, cancel_token)
                buffer.seek(0)
                with zipfile.ZipFile(buffer) as archive:
                    archive.extractall(target)
            result = target
        else:
            result = target / f"{artifact.name}.zip"
            logger.debug(f"Saving artifact as zip file to: {result}")
            with result.open("wb") as f:
                _copy_stream(response, f, cancel_token)
    finally:
        response.close()

    logger.info("Artifact downloaded.")
    return result


def _copy_stream(response: Any, out: Any, cancel_token: CancellationToken | None) -> None:
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        check_cancelled(cancel_token)
        if chunk:
            out.write(chunk)


def queue_build(
    client: AzureDevOpsApiClient,
    project: str,
    build_definition: str,
    branch: str | None = None,
    wait: bool = False,
    poll_interval: float = 5.0,
    cancel_token: CancellationToken | None = None,
) -> QueuedBuild | None:
    """
    Queue a build of a definition, optionally waiting for it to finish.

    Returns:
        The queued build (with its final result when waited on), or None in
        dry-run mode.

    Raises:
        BuildNotFoundError: If the definition does not exist.
        BuildFailedError: If waited on and the build did not succeed.
    """
    definition = find_definition(client, project, build_definition)
    logger.info(f"Queueing build of '{definition['name']}'")
    queued = client.queue_build(definition["id"], source_branch=branch, project=project)
    if not queued:
        return None

    build = _to_queued_build(queued)
    logger.info(f"Build {build.build_number} queued")
    if not wait:
        return build

    while build.status != "completed":
        check_cancelled(cancel_token)
        time.sleep(poll_interval)
        build = _to_queued_build(client.get_build(build.id, project))
        logger.debug(f"Build {build.build_number} is {build.status}")

    if not build.succeeded:
        raise BuildFailedError(
            f"Build {build.build_number} finished with result '{build.result}'",
            build_number=build.build_number,
            result=build.result,
        )
    logger.info(f"Build {build.build_number} {build.result}")
    return build


def _to_queued_build(build: dict[str, Any]) -> QueuedBuild:
    return QueuedBuild(
        id=build["id"],
        build_number=build.get("buildNumber", ""),
        status=build.get("status"),
        result=build.get("result"),
        url=build.get("_links", {}).get("web", {}).get("href"),
    )
