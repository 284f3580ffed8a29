"""Test utilities and helper functions."""

from pathlib import Path

from docker.errors import APIError, BuildError


class FakeRuntime:
    """
    In-memory stand-in for a container runtime.

    Records every mutating call so tests can assert on what was (not) issued.
    Failures are injected by setting the `fail_*` attributes to an exception.
    """

    def __init__(
        self,
        *,
        networks: set[str] | None = None,
        volumes: set[str] | None = None,
        images: set[str] | None = None,
    ) -> None:
        self.networks = set(networks or [])
        self.volumes = set(volumes or [])
        self.images = set(images or [])
        # name -> run kwargs (plus "image")
        self.running: dict[str, dict[str, object]] = {}
        # image -> number of anonymous containers running it
        self.anonymous: dict[str, int] = {}

        self.network_creates: list[str] = []
        self.volume_creates: list[str] = []
        self.pulls: list[str] = []
        self.builds: list[tuple[Path, str]] = []
        self.stops: list[str] = []

        self.fail_network_create: Exception | None = None
        self.fail_volume_create: Exception | None = None
        self.fail_pull: Exception | None = None
        self.fail_build: Exception | None = None
        self.fail_stop: Exception | None = None

    def network_exists(self, name: str) -> bool:
        return name in self.networks

    def create_network(self, name: str) -> None:
        self.network_creates.append(name)
        if self.fail_network_create is not None:
            raise self.fail_network_create
        self.networks.add(name)

    def volume_exists(self, name: str) -> bool:
        return name in self.volumes

    def create_volume(self, name: str) -> None:
        self.volume_creates.append(name)
        if self.fail_volume_create is not None:
            raise self.fail_volume_create
        self.volumes.add(name)

    def image_exists(self, tag: str) -> bool:
        return tag in self.images

    def pull_image(self, reference: str) -> None:
        self.pulls.append(reference)
        if self.fail_pull is not None:
            raise self.fail_pull
        self.images.add(reference)

    def build_image(self, dockerfile_path: Path, tag: str) -> None:
        self.builds.append((dockerfile_path, tag))
        if self.fail_build is not None:
            raise self.fail_build
        self.images.add(tag)

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
        if name in self.running:
            raise APIError(f'Conflict. The container name "/{name}" is already in use')
        self.running[name] = {
            "image": image,
            "ports": ports,
            "volumes": volumes,
            "network": network,
            "environment": environment,
        }

    def stop_container(self, name: str) -> bool:
        self.stops.append(name)
        if self.fail_stop is not None:
            raise self.fail_stop
        return self.running.pop(name, None) is not None

    def stop_containers_from(self, image: str) -> int:
        self.stops.append(image)
        if self.fail_stop is not None:
            raise self.fail_stop
        return self.anonymous.pop(image, 0)


def build_error(*lines: str) -> BuildError:
    """A BuildError carrying the given build log lines."""
    log = [{"stream": f"{line}\n"} for line in lines]
    return BuildError(reason=lines[-1] if lines else "build failed", build_log=log)


