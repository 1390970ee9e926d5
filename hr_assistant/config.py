"""
Runtime settings for the HR assistant.

Values come from the environment (or a local .env file); every field has a
default that runs the service offline against the in-memory record store.
"""

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-backed settings."""

    model_config = ConfigDict(env_file=".env", case_sensitive=False, populate_by_name=True)

    # Intent classification / free-form replies
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    litellm_model: str = Field(default="groq/llama-3.3-70b-versatile", alias="LITELLM_MODEL")
    llm_timeout_seconds: float = Field(default=5.0, alias="LLM_TIMEOUT_SECONDS")

    # Conversations
    max_sessions: int = Field(default=1000, alias="MAX_SESSIONS")
    max_history: int = Field(default=10, alias="MAX_HISTORY")
    session_ttl_seconds: int = Field(default=1800, alias="SESSION_TTL_SECONDS")
    default_employee_name: str = Field(default="Current User", alias="DEFAULT_EMPLOYEE_NAME")

    # Leave / WFH rules
    wfh_weekly_limit: int = Field(default=2, alias="WFH_WEEKLY_LIMIT")
    holidays_file: str | None = Field(default=None, alias="HOLIDAYS_FILE")
    pending_approval_expiry_hours: int = Field(default=168, alias="PENDING_APPROVAL_EXPIRY_HOURS")
    sweep_interval_seconds: int = Field(default=3600, alias="SWEEP_INTERVAL_SECONDS")

    # Record store; Snowflake is used only when an account is set
    record_store_timeout_seconds: float = Field(default=10.0, alias="RECORD_STORE_TIMEOUT_SECONDS")
    snowflake_account: str = Field(default="", alias="SNOWFLAKE_ACCOUNT")
    snowflake_user: str = Field(default="", alias="SNOWFLAKE_USER")
    snowflake_password: str = Field(default="", alias="SNOWFLAKE_PASSWORD")
    snowflake_warehouse: str = Field(default="", alias="SNOWFLAKE_WAREHOUSE")
    snowflake_database: str = Field(default="", alias="SNOWFLAKE_DATABASE")
    snowflake_schema: str = Field(default="", alias="SNOWFLAKE_SCHEMA")

    # Shared by the LLM and record-store breakers
    circuit_breaker_failure_threshold: int = Field(default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD")
    circuit_breaker_timeout: int = Field(default=60, alias="CIRCUIT_BREAKER_TIMEOUT")

    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def use_snowflake(self) -> bool:
        return bool(self.snowflake_account)

    @property
    def snowflake_connection(self) -> dict[str, str]:
        """Snowpark ``Session.builder.configs`` parameters."""
        return {
            "account": self.snowflake_account,
            "user": self.snowflake_user,
            "password": self.snowflake_password,
            "warehouse": self.snowflake_warehouse,
            "database": self.snowflake_database,
            "schema": self.snowflake_schema,
        }


settings = Settings()
