import signal
import subprocess
import sys
import threading
from pathlib import Path
from types import FrameType

import cyclopts
from docker.errors import DockerException
from loguru import logger
from rich.console import Console
from rich.table import Table

from php_switch.config import settings
from php_switch.dispatch import read_installed_image
from php_switch.docker.manager import DockerManager
from php_switch.logging_config import setup_logging
from php_switch.models import ProvisionFailed, ProvisionOutcome
from php_switch.provisioner import EnvironmentProvisioner
from php_switch.version import package_version
from php_switch.worker import ProvisioningQueue, exit_now, run_operation

app = cyclopts.App(
    help="php-switch: switch the host `php` between containerized PHP versions.",
    version=package_version(),
)

db_app = cyclopts.App(name="db", help="Start or stop the MariaDB container.")
app.command(db_app)


def _make_provisioner() -> EnvironmentProvisioner:
    """Connects to Docker or exits with status 1."""
    try:
        manager = DockerManager(quiet_init=False)
    except DockerException as e:
        logger.error(f"{e}")
        logger.error("   Please ensure the Docker daemon is active.")
        raise SystemExit(1) from e
    return EnvironmentProvisioner(manager, settings)


def _log_outcome(outcome: ProvisionOutcome) -> None:
    if isinstance(outcome, ProvisionFailed):
        stage = f" [{outcome.stage}]" if outcome.stage else ""
        logger.error(f"❌ Error{stage}: {outcome.error}")
        if outcome.detail:
            logger.error(outcome.detail)
    else:
        logger.success(f"✅ {outcome.message} ({outcome.duration.total_seconds():.1f}s)")


def _finish(outcome: ProvisionOutcome) -> None:
    _log_outcome(outcome)
    if isinstance(outcome, ProvisionFailed):
        raise SystemExit(1)


def _check_version(php_version: str) -> None:
    if php_version not in settings.php_versions:
        logger.error(
            f"❌ Unknown PHP version '{php_version}'. "
            f"Available: {', '.join(settings.php_versions)}"
        )
        raise SystemExit(1)


# --- Main CLI Commands ---


@app.command
def use(php_version: str) -> None:
    """
    Point the host `php` at an official PHP image, pulling it if needed.

    Args:
        php_version: The PHP version, e.g. 8.3.
    """
    setup_logging()
    _check_version(php_version)
    provisioner = _make_provisioner()
    _finish(
        run_operation(f"PHP {php_version}", provisioner.switch_version, php_version)
    )


@app.command
def custom(dockerfile: Path) -> None:
    """
    Build an image from a Dockerfile and point the host `php` at it.

    Args:
        dockerfile: The Dockerfile; its directory is the build context.
    """
    setup_logging()
    provisioner = _make_provisioner()
    _finish(run_operation("Custom PHP", provisioner.switch_custom, dockerfile))


@db_app.command(name="start")
def db_start() -> None:
    """Start MariaDB, creating its network and volume if needed."""
    setup_logging()
    provisioner = _make_provisioner()
    _finish(run_operation("Start MariaDB", provisioner.start_mariadb))


@db_app.command(name="stop")
def db_stop() -> None:
    """Stop MariaDB. Does nothing if it is not running."""
    setup_logging()
    provisioner = _make_provisioner()
    _finish(run_operation("Stop MariaDB", provisioner.stop_database))


@app.command
def stop() -> None:
    """Stop MariaDB and any running PHP containers."""
    setup_logging()
    provisioner = _make_provisioner()
    _finish(run_operation("Stop containers", provisioner.shutdown))


@app.command
def current() -> None:
    """Show which image the host `php` currently runs."""
    setup_logging()
    image = read_installed_image(settings.dispatch_path)
    if image is None:
        logger.info(f"No php-switch script installed at {settings.dispatch_path}.")
        return
    logger.info(f"{settings.dispatch_path} runs {image}")


@app.command
def config() -> None:
    """Print the effective configuration."""
    console = Console()
    table = Table(title="php-switch configuration", show_header=True)
    table.add_column("Setting", style="bold cyan")
    table.add_column("Value", style="white")
    table.add_column("Environment variable", style="dim")

    for name, value in settings.model_dump().items():
        table.add_row(name, str(value), f"PHPSWITCH_{name.upper()}")

    console.print(table)


def _spawn_detached_session(
    php_version: str | None, dockerfile: Path | None, db: bool
) -> int:
    """Starts `session` again in its own process group and returns its PID."""
    cmd = [sys.executable, "-m", "php_switch.cli", "session"]
    if php_version is not None:
        cmd.append(php_version)
    if dockerfile is not None:
        cmd.extend(["--dockerfile", str(dockerfile.expanduser().resolve())])
    if not db:
        cmd.append("--no-db")

    logger.debug(f"Spawning detached session: {' '.join(cmd)}")
    process = subprocess.Popen(
        cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
    return process.pid


def _close_session(
    queue: ProvisioningQueue, provisioner: EnvironmentProvisioner
) -> None:
    """
    Runs the shutdown workflow and leaves within `shutdown_timeout`.

    An operation still stuck in a Docker call is abandoned: the process exits
    without waiting for the worker thread.
    """
    drained = queue.shutdown(
        cleanup=provisioner.shutdown, timeout=settings.shutdown_timeout
    )
    if not queue.idle:
        logger.warning("⚠️ An operation is still running, leaving without it.")
        exit_now(0 if drained else 1)
    if not drained:
        raise SystemExit(1)


@app.command
def session(
    php_version: str | None = None,
    *,
    dockerfile: Path | None = None,
    db: bool = True,
    detach: bool = False,
) -> None:
    """
    Provision the environment and keep it up until interrupted.

    On Ctrl+C or SIGTERM, MariaDB and the PHP containers are stopped, waiting
    at most `shutdown_timeout` seconds.

    Args:
        php_version: PHP version to switch to.
        dockerfile: Build and switch to a custom image instead of a version.
        db: Start MariaDB as well.
        detach: Run the session in the background and print its PID. Its
            output only goes to PHPSWITCH_LOG_FILE, if set.
    """
    setup_logging()
    if php_version is not None and dockerfile is not None:
        logger.error("❌ Pass either a PHP version or --dockerfile, not both.")
        raise SystemExit(1)
    if php_version is not None:
        _check_version(php_version)

    if detach:
        pid = _spawn_detached_session(php_version, dockerfile, db)
        logger.info(f"Running in detached mode. PID: {pid}")
        return

    provisioner = _make_provisioner()
    stop_requested = threading.Event()

    def request_stop(signum: int, _frame: FrameType | None) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, quitting...")
        stop_requested.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    queue = ProvisioningQueue(on_result=_log_outcome)
    if db:
        queue.submit("Start MariaDB", provisioner.start_mariadb)
    if php_version is not None:
        queue.submit(f"PHP {php_version}", provisioner.switch_version, php_version)
    elif dockerfile is not None:
        queue.submit("Custom PHP", provisioner.switch_custom, dockerfile)

    logger.info("Environment is being provisioned. Press Ctrl+C to stop.")
    while not stop_requested.wait(timeout=0.5):
        pass

    _close_session(queue, provisioner)
    logger.complete()


if __name__ == "__main__":
    app()
