from pathlib import Path
from typing import Protocol

from php_switch.models import ImageRef


class ContainerRuntime(Protocol):
    """
    Abstracts the container runtime the provisioner drives.

    Existence queries return False on *any* failure: an unreachable daemon
    is indistinguishable from an absent resource. Mutating calls raise the
    runtime's own exception on failure.
    """

    def network_exists(self, name: str) -> bool:
        """Return True if a network called `name` exists."""
        ...

    def create_network(self, name: str) -> None:
        """Create a network called `name`."""
        ...

    def volume_exists(self, name: str) -> bool:
        """Return True if a volume called `name` exists."""
        ...

    def create_volume(self, name: str) -> None:
        """Create a volume called `name`."""
        ...

    def image_exists(self, tag: str) -> bool:
        """Return True if an image with `tag` is present locally."""
        ...

    def pull_image(self, reference: str) -> None:
        """Pull `reference` from its registry."""
        ...

    def build_image(self, dockerfile_path: Path, tag: str) -> None:
        """Build `dockerfile_path` with its directory as context, tagging it."""
        ...

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
        """Start a detached, self-removing container."""
        ...

    def stop_container(self, name: str) -> bool:
        """Stop the container called `name`. Return False if it does not exist."""
        ...

    def stop_containers_from(self, image: str) -> int:
        """Stop every running container created from `image`. Return the count."""
        ...
