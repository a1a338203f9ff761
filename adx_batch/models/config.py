"""
Pydantic models for application configuration.
Provides validation for the engine connection and the task defaults.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ENGINE_URL = "http://127.0.0.1:7830"


class TaskOptions(BaseModel):
    """
    Form-level task settings, before they are combined with a selection.

    Required-field checks happen when a `TaskRequest` is built, so a partially
    filled set of options is still a valid `TaskOptions`.
    """

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    output_dir: str = ""
    connect_sid: str = ""
    auth_mode: Literal["key", "captcha"] = "key"
    key: str = ""
    captcha: str = ""
    output_format: Literal["adx", "zip"] = "adx"
    download_no_bga: bool = False
    auto_bundle: bool = False
    bundle_output_path: str = ""
    retries: int = Field(default=3, ge=0)
    request_interval_ms: int = Field(default=1000, ge=0)


class ClientConfig(TaskOptions):
    """A validated configuration model for the application."""

    # Engine connection
    engine_url: str = DEFAULT_ENGINE_URL
    poll_interval_ms: int = 900
    log_capacity: int = 400

    # Internal field not loaded from INI file
    config_path: str = Field(default="", repr=False)

    @field_validator("engine_url")
    @classmethod
    def validate_engine_url(cls, v: str) -> str:
        """Ensures the engine URL is an http(s) base URL without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Engine URL must start with http:// or https://.")
        return v.rstrip("/")

    @field_validator("poll_interval_ms")
    @classmethod
    def validate_poll_interval(cls, v: int) -> int:
        if v < 100 or v > 60_000:
            raise ValueError("Poll interval must be between 100 and 60000 ms.")
        return v

    @field_validator("log_capacity")
    @classmethod
    def validate_log_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Log capacity must be at least 1.")
        return v

    def task_options(self) -> TaskOptions:
        """Returns only the task-level settings."""
        return TaskOptions(
            **{key: getattr(self, key) for key in TaskOptions.model_fields}
        )

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "captcha"}
        return {key for key in cls.model_fields if key not in internal_fields}
