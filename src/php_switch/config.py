"""
Centralized Configuration Management for php-switch.

This module uses pydantic-settings to manage all application-wide settings.
It provides a single, typed `Settings` object that can be imported and used
throughout the application, or constructed explicitly and handed to an
`EnvironmentProvisioner` (e.g. with isolated resource names in tests).

Configuration can be overridden via a `.env` file in the working directory or
by setting environment variables (e.g., `PHPSWITCH_NETWORK_NAME=dev_net`).
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from php_switch.models import ImageRef


class Settings(BaseSettings):
    """
    Defines the application's configuration settings.
    """

    # --- General Settings ---
    cli_default_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="The logging level for the application.",
    )
    log_file: Path | None = Field(
        default=None,
        description="Optional path of a JSON-lines log file (DEBUG level).",
    )

    # --- Docker Settings ---
    docker_host: str | None = Field(
        default=None,
        description="The host for the Docker daemon socket (e.g., 'unix:///var/run/docker.sock'). "  # noqa: E501
        "If None, the library will try to auto-detect.",
    )
    docker_timeout: int = Field(
        default=600,
        gt=0,
        description="Timeout in seconds for Docker API calls (pull and build included).",  # noqa: E501
    )
    shutdown_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound in seconds for the best-effort cleanup on exit.",
    )

    # --- Shared Resources ---
    network_name: str = Field(
        default="my_network",
        min_length=1,
        description="The Docker network shared by the database and PHP containers.",
    )
    volume_name: str = Field(
        default="php-gui-mariadb_data",
        min_length=1,
        description="The named volume holding the database files.",
    )

    # --- Database Settings ---
    db_image: str = Field(default="mariadb", description="The database image.")
    db_container_name: str = Field(
        default="mariadb",
        min_length=1,
        description="The fixed name of the database container.",
    )
    db_port: int = Field(
        default=3306,
        ge=1,
        le=65535,
        description="The host port bound to the database's port 3306.",
    )
    db_root_password: SecretStr = Field(
        default=SecretStr("root"),
        description="The database superuser password.",
    )
    db_data_dir: str = Field(
        default="/var/lib/mysql",
        description="Where the volume is mounted inside the database container.",
    )

    # --- PHP Settings ---
    php_image_template: str = Field(
        default="dunglas/frankenphp:1-php{version}",
        description="Image reference for a PHP version; `{version}` is substituted.",
    )
    php_versions: list[str] = Field(
        default_factory=lambda: ["8.2", "8.3"],
        description="The PHP versions that can be switched to.",
    )
    custom_image_tag: str = Field(
        default="custom-php:latest",
        description="The tag given to images built from a user Dockerfile.",
    )

    # --- Dispatch Script Settings ---
    dispatch_path: Path = Field(
        default=Path("/usr/local/bin/php"),
        description="Where the host-side `php` wrapper script is installed.",
    )
    dispatch_command: str = Field(
        default="php",
        min_length=1,
        description="The binary run inside the selected image.",
    )
    dispatch_workdir: str = Field(
        default="/app/public",
        description="Where the caller's working directory is mounted.",
    )

    # --- Pydantic-Settings Configuration ---
    model_config = SettingsConfigDict(
        # Prefix for environment variables (e.g., PHPSWITCH_DB_PORT)
        env_prefix="PHPSWITCH_",
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8",
    )

    @field_validator("php_image_template")
    @classmethod
    def validate_php_image_template(cls, v: str) -> str:
        if "{version}" not in v:
            raise ValueError("php_image_template must contain '{version}'")
        return v

    def php_image(self, version: str) -> ImageRef:
        """Image reference for a supported PHP version."""
        if version not in self.php_versions:
            raise ValueError(
                f"Unsupported PHP version {version!r}. "
                f"Choose one of: {', '.join(self.php_versions)}"
            )
        return ImageRef(self.php_image_template.format(version=version))

    @property
    def runtime_images(self) -> list[ImageRef]:
        """Every image a PHP runtime container may have been started from."""
        images = [self.php_image(version) for version in self.php_versions]
        images.append(ImageRef(self.custom_image_tag))
        return images


# Create a single, importable instance of the settings
settings = Settings()
