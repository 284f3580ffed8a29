from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Annotated, Literal, NewType

from pydantic import AwareDatetime, BaseModel, Field, TypeAdapter


def utc_now() -> datetime:
    """Returns the current time in UTC."""
    return datetime.now(UTC)


ImageRef = NewType("ImageRef", str)


class DispatchScript(BaseModel):
    """
    The wrapper installed on the host so that running the dispatch command
    (e.g. `php`) transparently runs it inside a container of `image`.
    """

    path: Path = Field(..., description="Where the script is installed.")
    image: ImageRef = Field(..., description="The image the script runs.")
    network: str = Field(..., description="The network the container joins.")
    content: str = Field(..., description="The full text of the script.")


# --- Provisioning Outcomes ---


class ProvisionSucceeded(BaseModel):
    """
    Wrapper for a provisioning operation that ran to completion.

    `image` is set for operations that resolve or build an image.
    """

    status: Literal["succeeded"] = "succeeded"
    operation: str = Field(..., description="The name of the operation.")
    message: str = Field(default="", description="Human-readable summary.")
    image: ImageRef | None = Field(default=None)
    started_at: AwareDatetime
    ended_at: AwareDatetime

    @property
    def duration(self) -> timedelta:
        return self.ended_at - self.started_at


class ProvisionFailed(BaseModel):
    """
    Wrapper for a provisioning operation that failed.

    `stage` is None when the failure did not come from a provisioning step
    (e.g. the Docker daemon could not be reached or an argument was invalid).
    """

    status: Literal["failed"] = "failed"
    operation: str
    stage: str | None = None
    error: str
    detail: str | None = None
    started_at: AwareDatetime
    ended_at: AwareDatetime

    @property
    def duration(self) -> timedelta:
        return self.ended_at - self.started_at


ProvisionOutcome = Annotated[
    ProvisionSucceeded | ProvisionFailed,
    Field(discriminator="status"),
]

ProvisionOutcomeAdapter = TypeAdapter(ProvisionOutcome)
