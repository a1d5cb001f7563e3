from pydantic import Field, JsonValue, PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Resolved run configuration, overridable through ``HTTPSTAGES_*`` environment variables."""

    continue_on_failure: bool = Field(default=False, description="Keep running tests after the first failed one.")
    environment: str | None = Field(default=None, description="Default environment label.")
    max_workers: PositiveInt = Field(default=1, description="Unrelated tests allowed in flight at once.")
    seed: int | None = Field(default=None, description="Session seed for generated values; random when unset.")
    request_timeout: PositiveFloat = Field(default=30.0, description="Per-request timeout in seconds.")
    max_generation_attempts: PositiveInt = Field(default=100)
    globals: dict[str, JsonValue] = Field(default_factory=dict)
    secrets: dict[str, str] = Field(default_factory=dict, description="Globals whose values are masked in output.")
    environments: dict[str, dict[str, JsonValue]] = Field(default_factory=dict, description="Globals overlay per environment label.")

    model_config = SettingsConfigDict(env_prefix="HTTPSTAGES_", env_nested_delimiter="__")

    def environment_globals(self, label: str | None) -> dict[str, JsonValue]:
        return dict(self.environments.get(label or self.environment or "", {}))
