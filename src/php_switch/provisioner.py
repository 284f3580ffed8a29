"""
Environment provisioning for php-switch.

`EnvironmentProvisioner` turns named-resource intents (a network, a volume,
a database container, a PHP image, the dispatch script) into idempotent
actions against a `ContainerRuntime`. Every operation blocks until the
runtime call returns; callers that need a responsive front end run them
through a `ProvisioningQueue`.
"""

from collections.abc import Callable
from pathlib import Path

from docker.errors import BuildError, DockerException
from loguru import logger
from requests.exceptions import RequestException

from php_switch.config import Settings, settings
from php_switch.dispatch import render_dispatch_script, write_dispatch_script
from php_switch.errors import ProvisionError, ProvisionStage
from php_switch.models import DispatchScript, ImageRef
from php_switch.runtime import ContainerRuntime

StatusCallback = Callable[[str], None]

# docker-py raises transport failures (timeouts, dropped connections) as plain
# requests exceptions, not as DockerException.
RUNTIME_ERRORS = (DockerException, RequestException)


def _runtime_output(exc: Exception) -> str:
    """The text the runtime produced for a failed call."""
    if isinstance(exc, BuildError):
        lines: list[str] = []
        for chunk in exc.build_log:
            if not isinstance(chunk, dict):
                continue
            text = chunk.get("stream") or chunk.get("error") or chunk.get("status")
            if isinstance(text, str) and text.strip():
                lines.append(text.rstrip("\n"))
        if lines:
            return "\n".join(lines)
    explanation = getattr(exc, "explanation", None)
    if isinstance(explanation, str) and explanation:
        return explanation
    return str(exc)


class EnvironmentProvisioner:
    """
    Idempotent setup and teardown primitives over a container runtime.

    Holds no state besides its collaborators, so a single instance may be
    shared between threads; serialising calls is the caller's concern.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        config: Settings | None = None,
        *,
        on_status: StatusCallback | None = None,
    ) -> None:
        self._runtime = runtime
        self._config = config or settings
        self._on_status = on_status

    @property
    def config(self) -> Settings:
        return self._config

    def _status(self, message: str) -> None:
        logger.info(message)
        if self._on_status is not None:
            self._on_status(message)

    # ----------------------- Shared resources ---------------------------------

    def ensure_network(self, name: str | None = None) -> None:
        """Create the network unless the runtime already knows it."""
        name = name or self._config.network_name
        if self._runtime.network_exists(name):
            logger.debug(f"Network '{name}' already exists.")
            return
        try:
            self._runtime.create_network(name)
        except RUNTIME_ERRORS as e:
            raise ProvisionError(
                ProvisionStage.NETWORK_CREATE,
                f"failed to create docker network {name}",
                detail=_runtime_output(e),
            ) from e
        logger.debug(f"Network '{name}' created.")

    def ensure_volume(self, name: str | None = None) -> None:
        """Create the volume unless the runtime already knows it."""
        name = name or self._config.volume_name
        if self._runtime.volume_exists(name):
            logger.debug(f"Volume '{name}' already exists.")
            return
        try:
            self._runtime.create_volume(name)
        except RUNTIME_ERRORS as e:
            raise ProvisionError(
                ProvisionStage.VOLUME_CREATE,
                f"failed to create docker volume {name}",
                detail=_runtime_output(e),
            ) from e
        logger.debug(f"Volume '{name}' created.")

    # ----------------------- Database -----------------------------------------

    def start_database(
        self, volume_name: str | None = None, network_name: str | None = None
    ) -> None:
        """
        Start the database container.

        The volume must already exist (see `ensure_volume`). Fails if a
        container with the configured name is already running.
        """
        config = self._config
        volume_name = volume_name or config.volume_name
        network_name = network_name or config.network_name

        self._status("Starting MariaDB container...")
        try:
            self._runtime.run_container(
                config.db_image,
                name=config.db_container_name,
                ports={"3306/tcp": config.db_port},
                volumes={volume_name: config.db_data_dir},
                network=network_name,
                environment={
                    "MYSQL_ROOT_PASSWORD": config.db_root_password.get_secret_value()
                },
            )
        except RUNTIME_ERRORS as e:
            raise ProvisionError(
                ProvisionStage.DB_START,
                f"failed to start {config.db_container_name} container",
                detail=_runtime_output(e),
            ) from e
        self._status("MariaDB started.")

    def stop_database(self) -> None:
        """Stop the database container. Never raises."""
        name = self._config.db_container_name
        try:
            if self._runtime.stop_container(name):
                self._status("MariaDB stopped.")
        except Exception as e:
            logger.warning(f"⚠️ Could not stop container {name}: {e}")

    def stop_runtime_containers(self) -> None:
        """Stop every container started from a known PHP image. Never raises."""
        for image in self._config.runtime_images:
            try:
                stopped = self._runtime.stop_containers_from(image)
            except Exception as e:
                logger.warning(f"⚠️ Could not stop containers of {image}: {e}")
                continue
            if stopped:
                logger.info(f"Stopped {stopped} container(s) running {image}.")

    # ----------------------- PHP images ---------------------------------------

    def resolve_or_pull_image(self, version: str) -> ImageRef:
        """
        Return the image for a PHP version, pulling it only if it is missing.

        Raises
        ------
        ValueError
            If `version` is not one of the configured PHP versions.
        ProvisionError
            With stage `pull` if the pull fails.
        """
        image = self._config.php_image(version)

        if self._runtime.image_exists(image):
            self._status(f"PHP {version} Docker image already exists.")
            return image

        self._status(f"Pulling PHP {version} Docker image...")
        try:
            self._runtime.pull_image(image)
        except RUNTIME_ERRORS as e:
            raise ProvisionError(
                ProvisionStage.PULL,
                f"failed to pull Docker image {image}",
                detail=_runtime_output(e),
            ) from e
        self._status(f"PHP {version} Docker image pulled.")
        return image

    def build_custom_image(self, dockerfile_path: Path) -> ImageRef:
        """
        Build the custom PHP image from a user Dockerfile.

        The Dockerfile's directory is the build context. The result always
        carries the configured custom tag, replacing any earlier build.
        """
        tag = ImageRef(self._config.custom_image_tag)
        dockerfile_path = Path(dockerfile_path).expanduser().resolve()
        if not dockerfile_path.is_file():
            raise ProvisionError(
                ProvisionStage.BUILD,
                f"failed to build custom docker image: {dockerfile_path} is not a file",
            )

        self._status("Building custom Docker image...")
        try:
            self._runtime.build_image(dockerfile_path, tag)
        except RUNTIME_ERRORS as e:
            raise ProvisionError(
                ProvisionStage.BUILD,
                "failed to build custom docker image",
                detail=_runtime_output(e),
            ) from e
        self._status("Custom Docker image built.")
        return tag

    # ----------------------- Dispatch script ----------------------------------

    def install_dispatch_script(self, image: ImageRef) -> DispatchScript:
        """Replace the host dispatch script with one running `image`."""
        script = render_dispatch_script(image, self._config)
        write_dispatch_script(script)
        logger.debug(f"Dispatch script at {script.path} now runs {image}.")
        return script

    # ----------------------- Workflows ----------------------------------------

    def switch_version(self, version: str) -> ImageRef:
        """Make the host dispatch command run the given PHP version."""
        self.ensure_network()
        image = self.resolve_or_pull_image(version)
        self.install_dispatch_script(image)
        self._status(f"PHP {version} set.")
        return image

    def switch_custom(self, dockerfile_path: Path) -> ImageRef:
        """Make the host dispatch command run an image built from a Dockerfile."""
        self.ensure_network()
        image = self.build_custom_image(dockerfile_path)
        self.install_dispatch_script(image)
        self._status("Custom PHP set.")
        return image

    def start_mariadb(self) -> None:
        self.ensure_network()
        self.ensure_volume()
        self.start_database()

    def shutdown(self) -> None:
        """Best-effort stop of every container this tool may have started."""
        self.stop_database()
        self.stop_runtime_containers()
