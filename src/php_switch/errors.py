from enum import Enum


class ProvisionStage(str, Enum):
    """The step of a provisioning workflow that failed."""

    NETWORK_CREATE = "network-create"
    VOLUME_CREATE = "volume-create"
    DB_START = "db-start"
    PULL = "pull"
    BUILD = "build"
    SCRIPT_REMOVE = "script-remove"
    SCRIPT_WRITE = "script-write"


class ProvisionError(Exception):
    """
    A provisioning step failed.

    Carries the failed `stage` and, where the runtime produced any, the
    captured output in `detail`. The underlying exception is chained as
    `__cause__`.
    """

    def __init__(
        self, stage: ProvisionStage, message: str, detail: str | None = None
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"[{self.stage.value}] {self.message}, output: {self.detail}"
        return f"[{self.stage.value}] {self.message}"
