"""Central environment-driven settings for the notification reconciler.

Loaded once per process. Behavior is controlled by environment variables (see
`.env.example`); the reconciliation core only sees the frozen
`ReconcilerConfig` built from these values.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "paysync-notification"
    log_level: str = "INFO"
    max_update_retries: int = 20
    notification_concurrency: int = 10
    enable_hmac_signature: bool = False
    sensitive_notification_fields: list[str] = ["additionalData", "reason"]
    # Transaction type used when CANCEL_OR_REFUND carries no usable
    # `modification.action`; unset keeps the mapping table's type.
    cancel_or_refund_fallback_type: str | None = None
    interaction_type_key: str = "ctp-adyen-integration-interaction-notification"
    store_url: str = "https://api.europe-west1.gcp.commercetools.com"
    store_project_key: str = ""
    store_access_token: str = ""
    store_timeout_seconds: float = 10.0
    postgres_dsn: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
