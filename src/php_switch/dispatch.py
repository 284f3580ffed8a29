"""
Host-side dispatch script.

The dispatch script is a small POSIX shell wrapper installed at a fixed path
(by default `/usr/local/bin/php`). Invoking it runs the configured command in
a throwaway container of the selected image, with the caller's working
directory bind-mounted and all arguments forwarded.
"""

import os
import shlex
import tempfile
from pathlib import Path
from textwrap import dedent

from loguru import logger

from php_switch.config import Settings
from php_switch.errors import ProvisionError, ProvisionStage
from php_switch.models import DispatchScript, ImageRef

_SCRIPT_TEMPLATE = dedent(
    """\
    #!/bin/sh
    # Generated by php-switch. Runs {command} from {image}.
    exec docker run --rm -i --network {network} -v "$PWD":{workdir} -w {workdir} {image} {command} "$@"
    """  # noqa: E501
)


def render_dispatch_script(image: ImageRef, config: Settings) -> DispatchScript:
    """Render the dispatch script for `image` without touching the filesystem."""
    content = _SCRIPT_TEMPLATE.format(
        network=shlex.quote(config.network_name),
        workdir=shlex.quote(config.dispatch_workdir),
        image=shlex.quote(image),
        command=shlex.quote(config.dispatch_command),
    )
    return DispatchScript(
        path=config.dispatch_path,
        image=image,
        network=config.network_name,
        content=content,
    )


def write_dispatch_script(script: DispatchScript) -> None:
    """
    Atomically installs `script` at its path.

    The content is written to a temporary file next to the target, made
    executable and renamed over any previous file or symlink. Readers see
    either the previous script or the new one, never a partial file.

    Raises
    ------
    ProvisionError
        With stage `script-write` if the temporary file cannot be written,
        or `script-remove` if the previous entry cannot be replaced.
    """
    target = script.path
    logger.debug(f"Installing dispatch script at {target} for {script.image}")

    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
    except OSError as e:
        raise ProvisionError(
            ProvisionStage.SCRIPT_WRITE,
            f"failed to write script in {target.parent}: {e}",
        ) from e

    tmp_path = Path(tmp_name)
    try:
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(script.content)
                f.flush()
                os.fsync(f.fileno())
            tmp_path.chmod(0o755)
        except OSError as e:
            raise ProvisionError(
                ProvisionStage.SCRIPT_WRITE,
                f"failed to write script {target}: {e}",
            ) from e

        try:
            os.replace(tmp_path, target)
        except OSError as e:
            raise ProvisionError(
                ProvisionStage.SCRIPT_REMOVE,
                f"failed to replace existing script {target}: {e}",
            ) from e
    except ProvisionError:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.debug(f"✅ Dispatch script installed at {target}")


def read_installed_image(path: Path) -> ImageRef | None:
    """
    Return the image referenced by the dispatch script at `path`.

    Returns None if no script is installed there, if it cannot be read, or if it
    was not generated by php-switch (e.g. a native php binary).
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Cannot read dispatch script at {path}: {e}")
        return None

    for line in content.splitlines():
        if line.startswith("exec docker run "):
            tokens = shlex.split(line)
            # The image precedes the command and the forwarded "$@"
            if len(tokens) >= 3:
                return ImageRef(tokens[-3])
    return None
