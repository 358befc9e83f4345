# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Driver image build and publish to ECR."""

from __future__ import annotations

from pathlib import Path

import docker
import sh
from rich.panel import Panel

from e2e_runner import console, logger
from e2e_runner.constants import ECR_REGISTRY_TEMPLATE, ECR_USERNAME
from e2e_runner.errors import ImagePublishError


class EcrRegistry:
    """Thin wrapper over the aws CLI calls needed to publish to ECR."""

    def __init__(self, region: str) -> None:
        self.region = region

    def account_id(self) -> str:
        try:
            return str(sh.aws(
                "sts", "get-caller-identity",
                "--query", "Account", "--output", "text",
            )).strip()
        except sh.ErrorReturnCode as err:
            raise ImagePublishError(f"Could not resolve AWS account: {err.stderr.decode(errors='replace')}") from err

    def image_exists(self, repository: str, tag: str) -> bool:
        try:
            sh.aws(
                "ecr", "describe-images",
                "--region", self.region,
                "--repository-name", repository,
                "--image-ids", f"imageTag={tag}",
            )
            return True
        except sh.ErrorReturnCode:
            return False

    def ensure_repository(self, repository: str) -> None:
        try:
            sh.aws("ecr", "describe-repositories", "--region", self.region, "--repository-names", repository)
        except sh.ErrorReturnCode:
            console.print(f"[yellow]   Creating ECR repository {repository}[/yellow]")
            sh.aws("ecr", "create-repository", "--region", self.region, "--repository-name", repository)

    def login_password(self) -> str:
        return str(sh.aws("ecr", "get-login-password", "--region", self.region)).strip()


def resolve_image_name(registry: EcrRegistry, image_name: str, driver_name: str) -> str:
    """Return the configured image repository, or the ECR one for this account.

    Args:
        registry: ECR wrapper used to look up the account id.
        image_name: Configured repository, or empty to derive one.
        driver_name: Repository name inside the registry.

    Returns:
        Full image repository without a tag.
    """
    if image_name:
        return image_name
    host = ECR_REGISTRY_TEMPLATE.format(account=registry.account_id(), region=registry.region)
    return f"{host}/{driver_name}"


def _split_repository(image_name: str) -> tuple[str, str]:
    """Split ``host/path`` into (registry host, repository path)."""
    host, _, repository = image_name.partition("/")
    return host, repository


def _local_image_exists(client: docker.DockerClient, ref: str) -> bool:
    try:
        client.images.get(ref)
        return True
    except docker.errors.ImageNotFound:
        return False
    except docker.errors.APIError as err:
        raise ImagePublishError(f"Could not inspect local image {ref}: {err}") from err


def _push(client: docker.DockerClient, image_name: str, tag: str) -> None:
    """Push an image and surface errors reported inside the progress stream.

    Raises:
        ImagePublishError: If the daemon reports an error for any layer.
    """
    for event in client.images.push(image_name, tag=tag, stream=True, decode=True):
        if "error" in event:
            raise ImagePublishError(f"Push of {image_name}:{tag} failed: {event['error']}")
        logger.debug("push: %s", event.get("status", ""))


def ensure_image(
    client: docker.DockerClient,
    registry: EcrRegistry,
    image_name: str,
    tag: str,
    source_dir: Path,
) -> bool:
    """Make sure ``image_name:tag`` exists in the registry.

    A tag that already exists locally or in the registry is trusted as-is; its
    content is not compared with the current source tree.

    Args:
        client: Docker client used to build and push.
        registry: ECR wrapper for presence checks and authentication.
        image_name: Full image repository without a tag.
        tag: Image tag, unique per run.
        source_dir: Docker build context.

    Returns:
        True if the image was built and pushed, False if an existing one was reused.

    Raises:
        ImagePublishError: If authentication, build or push fails.
    """
    ref = f"{image_name}:{tag}"
    console.print(Panel.fit(f"Publishing driver image {ref}", style="bold blue"))
    host, repository = _split_repository(image_name)

    if _local_image_exists(client, ref) or registry.image_exists(repository, tag):
        console.print(f"[yellow]\u2139\ufe0f  Image {ref} already exists, reusing it[/yellow]")
        return False

    try:
        registry.ensure_repository(repository)
        client.login(username=ECR_USERNAME, password=registry.login_password(), registry=host)
        console.print(f"[yellow]\u2139\ufe0f  Building {ref} from {source_dir}...[/yellow]")
        client.images.build(path=str(source_dir), tag=ref, rm=True)
        _push(client, image_name, tag)
    except (docker.errors.BuildError, docker.errors.APIError, sh.ErrorReturnCode) as err:
        raise ImagePublishError(f"Could not publish {ref}: {err}") from err

    console.print(f"[green]\u2705 Image {ref} pushed[/green]")
    return True
