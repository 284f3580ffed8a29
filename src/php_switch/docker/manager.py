"""
Docker Interaction Layer for php-switch.

This module provides a high-level, clean API for managing the Docker
resources (networks, volumes, images, containers) the provisioner needs.
It encapsulates the low-level details of the `docker-py` library and
implements the `ContainerRuntime` interface.
"""

from pathlib import Path

import docker
from docker import DockerClient
from docker.errors import BuildError, DockerException, ImageNotFound, NotFound
from loguru import logger
from requests.exceptions import RequestException

from php_switch.config import Settings, settings
from php_switch.runtime import ContainerRuntime


class DockerManager(ContainerRuntime):
    """
    Manages the Docker resources backing a PHP development environment.
    """

    @classmethod
    def get_client(
        cls, quiet: bool = True, config: Settings | None = None
    ) -> DockerClient:
        """
        Tests the connection to Docker daemon and returns a Docker client.

        Parameters
        ----------
        quiet
            If True, suppresses debug messages.
        config
            The settings to read the daemon host and API timeout from.
            Defaults to the global settings.

        Returns
        -------
        DockerClient
            A configured Docker client instance.

        Raises
        ------
        DockerException
            If the Docker daemon is not running or cannot be reached.
        """
        config = config or settings

        def maybe_log(msg: str) -> None:
            if not quiet:
                logger.info(msg)

        try:
            maybe_log("Attempting to connect to Docker daemon...")

            if config.docker_host:
                maybe_log(f"  > Using configured host: {config.docker_host}")
                client = docker.DockerClient(
                    base_url=config.docker_host, timeout=config.docker_timeout
                )
            else:
                maybe_log("  > No host configured, using auto-detection (from_env).")
                client = docker.from_env(timeout=config.docker_timeout)  # type: ignore[reportUnknownMemberType]

            if not client.ping():  # type: ignore[reportUnknownMemberType]
                raise DockerException(
                    "Docker daemon responded to ping, but in a failed state."
                )

            maybe_log("✅ Docker client initialized successfully.")

            return client

        except (DockerException, RequestException) as e:
            raise DockerException(
                "❌ Error: Docker is not running or is not configured correctly."
            ) from e

    def __init__(
        self,
        client: DockerClient | None = None,
        *,
        quiet_init: bool = True,
        config: Settings | None = None,
    ) -> None:
        """
        Initializes the Docker client and verifies connection to the daemon.

        Parameters
        ----------
        client
            An already configured client. When omitted, one is created with
            `get_client`.
        quiet_init
            If True, suppresses debug messages during initialization.
        config
            Settings used to create the client.

        Raises
        ------
        DockerException
            If the Docker daemon is not running or cannot be reached.
        """
        self._client = client or self.get_client(quiet=quiet_init, config=config)

    # ----------------------- Networks and volumes -----------------------------

    def network_exists(self, name: str) -> bool:
        """Check if a Docker network with the given name exists."""
        try:
            self._client.networks.get(name)
            return True
        except NotFound:
            return False
        except (DockerException, RequestException) as e:
            logger.debug(f"Network lookup for {name} failed, treating as absent: {e}")
            return False

    def create_network(self, name: str) -> None:
        logger.debug(f"Creating network: {name}")
        try:
            self._client.networks.create(name, driver="bridge")
            logger.debug(f"✅ Network {name} created.")
        except (DockerException, RequestException) as e:
            logger.error(f"❌ Failed to create network {name}: {e}")
            raise

    def volume_exists(self, name: str) -> bool:
        """Check if a Docker volume with the given name exists."""
        try:
            self._client.volumes.get(name)
            return True
        except NotFound:
            return False
        except (DockerException, RequestException) as e:
            logger.debug(f"Volume lookup for {name} failed, treating as absent: {e}")
            return False

    def create_volume(self, name: str) -> None:
        logger.debug(f"Creating volume: {name}")
        try:
            self._client.volumes.create(name=name)
            logger.debug(f"✅ Volume {name} created.")
        except (DockerException, RequestException) as e:
            logger.error(f"❌ Failed to create volume {name}: {e}")
            raise

    # ----------------------- Images -------------------------------------------

    def image_exists(self, tag: str) -> bool:
        """Check if a Docker image with the given tag exists locally."""
        try:
            self._client.images.get(tag)
            return True
        except ImageNotFound:
            return False
        except (DockerException, RequestException) as e:
            logger.debug(f"Image lookup for {tag} failed, treating as absent: {e}")
            return False

    def pull_image(self, reference: str) -> None:
        """
        Pulls an image from its registry.

        Parameters
        ----------
        reference
            The full image reference, e.g. 'dunglas/frankenphp:1-php8.3'.
        """
        logger.debug(f"Pulling image: {reference}")
        try:
            self._client.images.pull(reference)
            logger.debug(f"✅ Successfully pulled image: {reference}")
        except (DockerException, RequestException) as e:
            logger.error(f"❌ Failed to pull image {reference}: {e}")
            raise

    def build_image(self, dockerfile_path: Path, tag: str) -> None:
        """
        Builds a Docker image from a Dockerfile on disk.

        Parameters
        ----------
        dockerfile_path
            The Dockerfile. Its parent directory is used as build context.
        tag
            The tag to apply to the built image (e.g., 'custom-php:latest').
            An existing image with the same tag is superseded.
        """
        logger.debug(f"Building Docker image with tag: {tag} from {dockerfile_path}...")
        try:
            _, build_log_stream = self._client.images.build(
                path=str(dockerfile_path.parent),
                dockerfile=dockerfile_path.name,
                tag=tag,
                rm=True,  # Remove intermediate containers
                forcerm=True,
            )

            for chunk in build_log_stream:
                if isinstance(chunk, dict) and "stream" in chunk:
                    line = chunk["stream"]
                    if isinstance(line, str) and line.strip():
                        logger.debug(f"  | {line.strip()}")

            logger.debug(f"✅ Successfully built image: {tag}")
        except BuildError as e:
            logger.error(
                f"❌ Docker build failed for tag {tag} ({e.__class__.__name__}: {e})"
            )
            raise
        except (DockerException, RequestException) as e:
            logger.error(f"❌ Could not build image {tag}: {e}")
            raise

    # ----------------------- Containers ---------------------------------------

    def run_container(
        self,
        image: str,
        *,
        name: str,
        ports: dict[str, int],
        volumes: dict[str, str],
        network: str,
        environment: dict[str, str],
    ) -> None:
        """
        Runs a detached container that removes itself once stopped.

        Parameters
        ----------
        image
            The image to run. It is pulled by the daemon if missing.
        name
            The container name. Fails if a container already has it.
        ports
            Container port (e.g. '3306/tcp') to host port.
        volumes
            Volume name to mount point inside the container.
        network
            The network to attach the container to.
        environment
            Environment variables for the container.
        """
        logger.debug(f"Starting container {name} from image: {image}")
        try:
            container = self._client.containers.run(
                image,
                detach=True,
                auto_remove=True,
                name=name,
                ports=ports,
                volumes={
                    volume: {"bind": mount, "mode": "rw"}
                    for volume, mount in volumes.items()
                },
                network=network,
                environment=environment,
            )
            logger.debug(f"✅ Container {name} ({container.short_id}) is running.")
        except (DockerException, RequestException) as e:
            logger.error(
                f"❌ Failed to run container {name} from image {image} ({e.__class__.__name__}: {e})"  # noqa: E501
            )
            raise

    def stop_container(self, name: str) -> bool:
        """
        Stops a container by name.

        Returns
        -------
        False if no container with that name exists, True once it is stopped.
        """
        try:
            container = self._client.containers.get(name)
            logger.debug(f"Stopping container: {name}")
            container.stop()
            logger.debug(f"✅ Container {name} stopped.")
            return True
        except NotFound:
            # Not running, or already removed thanks to auto_remove
            logger.debug(f"Container {name} is not running.")
            return False

    def stop_containers_from(self, image: str) -> int:
        """Stops every running container created from the given image."""
        stopped = 0
        for container in self._client.containers.list(filters={"ancestor": image}):
            try:
                logger.debug(f"Stopping container {container.short_id} ({image})")
                container.stop()
                stopped += 1
            except NotFound:  # pragma: no cover
                logger.debug(f"Container {container.short_id} already removed.")
        return stopped
