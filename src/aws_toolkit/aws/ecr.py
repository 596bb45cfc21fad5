"""Amazon ECR repository, image and lifecycle policy management."""

import base64
import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.aws.exceptions import ECRError, ResourceNotFoundError, ValidationError
from aws_toolkit.config import Settings, get_settings

logger: Final = logging.getLogger(__name__)


def format_size(size_in_bytes: int | None) -> str:
    """Format a byte count as megabytes.

    Example:
        >>> format_size(5 * 1024 * 1024)
        '5.00 MB'
    """
    if size_in_bytes is None:
        return "N/A"
    return f"{size_in_bytes / (1024 * 1024):.2f} MB"


def build_lifecycle_policy(keep_count: int) -> str:
    """Build a lifecycle policy that expires all but the newest ``keep_count`` images."""
    return json.dumps(
        {
            "rules": [
                {
                    "rulePriority": 1,
                    "description": f"Keep the last {keep_count} images",
                    "selection": {
                        "tagStatus": "any",
                        "countType": "imageCountMoreThan",
                        "countNumber": keep_count,
                    },
                    "action": {"type": "expire"},
                }
            ]
        }
    )


class EcrService:
    """Service for ECR repositories, images, login and lifecycle policies.

    Example:
        >>> ecr = EcrService()
        >>> uri = await ecr.create_repository("my-model")
        >>> for line in await ecr.get_push_commands("my-model", "my-model:latest", "v1"):
        ...     print(line)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("ecr", settings=self.settings)
        logger.info(f"Initialized EcrService for region {self.settings.aws_region}")

    # =========================================================================
    # Repositories
    # =========================================================================

    async def create_repository(
        self,
        repository_name: str,
        tag_mutability: str = "MUTABLE",
        scan_on_push: bool = True,
        tags: Mapping[str, str] | None = None,
    ) -> str:
        """Create an AES256-encrypted repository.

        Args:
            repository_name: Repository name.
            tag_mutability: 'MUTABLE' or 'IMMUTABLE'. Defaults to 'MUTABLE'.
            scan_on_push: Scan images on push. Defaults to True.
            tags: Repository tags. Defaults to None.

        Returns:
            Repository URI.
        """
        kwargs: dict[str, Any] = {
            "repositoryName": repository_name,
            "imageTagMutability": tag_mutability,
            "imageScanningConfiguration": {"scanOnPush": scan_on_push},
            "encryptionConfiguration": {"encryptionType": "AES256"},
        }
        if tags:
            kwargs["tags"] = [{"Key": k, "Value": v} for k, v in tags.items()]

        try:
            response = await self.client.call("create_repository", **kwargs)
            uri: str = response["repository"]["repositoryUri"]
            logger.info(f"Created ECR repository {repository_name}: {uri}")
            return uri
        except Exception as e:
            logger.error(f"Failed to create repository {repository_name}: {e}")
            raise

    async def create_repository_with_tags(
        self, repository_name: str, tags: Mapping[str, str]
    ) -> str:
        """Create a mutable, scan-on-push repository with tags."""
        return await self.create_repository(repository_name, tags=tags)

    async def describe_repository(self, repository_name: str) -> dict[str, Any] | None:
        """Describe a repository, or return None if it does not exist."""
        try:
            response = await self.client.call(
                "describe_repositories", repositoryNames=[repository_name]
            )
        except ResourceNotFoundError as e:
            if e.error_code != "RepositoryNotFoundException":
                logger.error(f"Failed to describe repository {repository_name}: {e}")
                raise
            logger.info(f"Repository {repository_name} not found")
            return None
        except Exception as e:
            logger.error(f"Failed to describe repository {repository_name}: {e}")
            raise

        repositories: list[dict[str, Any]] = response.get("repositories", [])
        return repositories[0] if repositories else None

    async def list_repositories(self) -> list[dict[str, Any]]:
        """List every repository in the registry."""
        kwargs: dict[str, Any] = {}
        repositories: list[dict[str, Any]] = []
        try:
            while True:
                response = await self.client.call("describe_repositories", **kwargs)
                repositories.extend(response.get("repositories", []))
                next_token = response.get("nextToken")
                if not next_token:
                    break
                kwargs["nextToken"] = next_token
        except Exception as e:
            logger.error(f"Failed to list repositories: {e}")
            raise

        logger.info(f"Found {len(repositories)} repository(ies)")
        return repositories

    async def delete_repository(self, repository_name: str, force: bool = False) -> None:
        """Delete a repository. ``force`` also deletes the images in it."""
        logger.warning(f"Deleting ECR repository {repository_name} (force={force})")
        try:
            await self.client.call(
                "delete_repository", repositoryName=repository_name, force=force
            )
        except Exception as e:
            logger.error(f"Failed to delete repository {repository_name}: {e}")
            raise

    # =========================================================================
    # Images
    # =========================================================================

    async def list_images(self, repository_name: str) -> list[dict[str, str]]:
        """List image identifiers (imageTag and imageDigest) of a repository."""
        kwargs: dict[str, Any] = {"repositoryName": repository_name}
        image_ids: list[dict[str, str]] = []
        try:
            while True:
                response = await self.client.call("list_images", **kwargs)
                image_ids.extend(response.get("imageIds", []))
                next_token = response.get("nextToken")
                if not next_token:
                    break
                kwargs["nextToken"] = next_token
        except Exception as e:
            logger.error(f"Failed to list images of {repository_name}: {e}")
            raise

        return image_ids

    async def describe_images(self, repository_name: str) -> list[dict[str, Any]]:
        """Describe every image of a repository (size, tags, push time, scan status)."""
        try:
            response = await self.client.call("describe_images", repositoryName=repository_name)
        except Exception as e:
            logger.error(f"Failed to describe images of {repository_name}: {e}")
            raise

        details: list[dict[str, Any]] = response.get("imageDetails", [])
        return details

    async def describe_image(self, repository_name: str, image_tag: str) -> dict[str, Any] | None:
        """Describe one tagged image, or return None if it does not exist."""
        try:
            response = await self.client.call(
                "describe_images",
                repositoryName=repository_name,
                imageIds=[{"imageTag": image_tag}],
            )
        except ResourceNotFoundError as e:
            if e.error_code != "ImageNotFoundException":
                logger.error(f"Failed to describe image {repository_name}:{image_tag}: {e}")
                raise
            logger.info(f"Image {repository_name}:{image_tag} not found")
            return None
        except Exception as e:
            logger.error(f"Failed to describe image {repository_name}:{image_tag}: {e}")
            raise

        details: list[dict[str, Any]] = response.get("imageDetails", [])
        return details[0] if details else None

    async def delete_image(self, repository_name: str, image_tag: str) -> list[dict[str, Any]]:
        """Delete one tagged image.

        Returns:
            Failures reported by BatchDeleteImage; empty on success.
        """
        return await self.delete_images(repository_name, [image_tag])

    async def delete_images(
        self, repository_name: str, image_tags: Sequence[str]
    ) -> list[dict[str, Any]]:
        """Delete several tagged images in one batch.

        Returns:
            Failures reported by BatchDeleteImage; empty on success.
        """
        if not image_tags:
            raise ValidationError("image_tags cannot be empty", service="ecr")

        logger.warning(f"Deleting {len(image_tags)} image(s) from {repository_name}")
        try:
            response = await self.client.call(
                "batch_delete_image",
                repositoryName=repository_name,
                imageIds=[{"imageTag": tag} for tag in image_tags],
            )
        except Exception as e:
            logger.error(f"Failed to delete images from {repository_name}: {e}")
            raise

        failures: list[dict[str, Any]] = response.get("failures", [])
        logger.info(f"Deleted {len(response.get('imageIds', []))} image(s)")
        for failure in failures:
            logger.warning(
                f"Failed to delete {failure.get('imageId', {}).get('imageTag')}: "
                f"{failure.get('failureReason')}"
            )
        return failures

    # =========================================================================
    # Authorization
    # =========================================================================

    async def get_authorization_token(self) -> dict[str, Any]:
        """Get registry authorization data (token, proxyEndpoint, expiresAt).

        Raises:
            ECRError: If the response carries no authorization data.
        """
        try:
            response = await self.client.call("get_authorization_token")
        except Exception as e:
            logger.error(f"Failed to get ECR authorization token: {e}")
            raise

        data = response.get("authorizationData", [])
        if not data:
            raise ECRError(
                "No authorization data returned",
                service="ecr",
                operation="get_authorization_token",
            )

        auth: dict[str, Any] = data[0]
        logger.info(f"Got ECR token for {auth.get('proxyEndpoint')}, expires {auth.get('expiresAt')}")
        return auth

    async def get_docker_login_command(self) -> str:
        """Build a ``docker login`` command from a fresh authorization token.

        The token decodes to ``AWS:<password>``.

        Returns:
            The login command. It contains the registry password.
        """
        auth = await self.get_authorization_token()
        decoded = base64.b64decode(auth["authorizationToken"]).decode("utf-8")
        username, _, password = decoded.partition(":")
        return f"docker login --username {username} --password {password} {auth['proxyEndpoint']}"

    async def get_push_commands(
        self, repository_name: str, local_image: str, tag: str = "latest"
    ) -> list[str]:
        """Build the shell commands that push a local image to a repository.

        Args:
            repository_name: Target repository.
            local_image: Local image reference (e.g., 'my-model:latest').
            tag: Tag in the repository. Defaults to 'latest'.

        Returns:
            Login, tag and push commands.

        Raises:
            ResourceNotFoundError: If the repository does not exist.
        """
        repository = await self.describe_repository(repository_name)
        if repository is None:
            raise ResourceNotFoundError(
                f"Repository not found: {repository_name}",
                service="ecr",
                operation="describe_repositories",
            )

        repository_uri = repository["repositoryUri"]
        registry = repository_uri.split("/")[0]
        image_uri = f"{repository_uri}:{tag}"
        return [
            f"aws ecr get-login-password --region {self.settings.aws_region} "
            f"| docker login --username AWS --password-stdin {registry}",
            f"docker tag {local_image} {image_uri}",
            f"docker push {image_uri}",
        ]

    async def print_push_commands(
        self, repository_name: str, local_image: str, tag: str = "latest"
    ) -> None:
        """Print the push steps for a local image to stdout."""
        login, tag_command, push = await self.get_push_commands(repository_name, local_image, tag)
        print("==================== Push Image ====================")
        print("1. Log in to ECR:")
        print(f"   {login}")
        print("2. Tag the local image:")
        print(f"   {tag_command}")
        print("3. Push the image:")
        print(f"   {push}")
        print("=====================================================")

    # =========================================================================
    # Lifecycle Policies
    # =========================================================================

    async def set_lifecycle_policy(self, repository_name: str, keep_count: int) -> None:
        """Keep only the newest ``keep_count`` images of a repository."""
        if keep_count < 1:
            raise ValidationError("keep_count must be at least 1", service="ecr")

        try:
            await self.client.call(
                "put_lifecycle_policy",
                repositoryName=repository_name,
                lifecyclePolicyText=build_lifecycle_policy(keep_count),
            )
            logger.info(f"Lifecycle policy set on {repository_name}: keep {keep_count} image(s)")
        except Exception as e:
            logger.error(f"Failed to set lifecycle policy on {repository_name}: {e}")
            raise

    async def get_lifecycle_policy(self, repository_name: str) -> str | None:
        """Get the lifecycle policy text, or None if the repository has none."""
        try:
            response = await self.client.call(
                "get_lifecycle_policy", repositoryName=repository_name
            )
        except ResourceNotFoundError as e:
            if e.error_code != "LifecyclePolicyNotFoundException":
                logger.error(f"Failed to get lifecycle policy of {repository_name}: {e}")
                raise
            logger.info(f"Repository {repository_name} has no lifecycle policy")
            return None
        except Exception as e:
            logger.error(f"Failed to get lifecycle policy of {repository_name}: {e}")
            raise

        policy: str = response["lifecyclePolicyText"]
        return policy

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
