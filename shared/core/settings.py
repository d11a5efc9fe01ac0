"""
Settings common to every fulfillment service.

Each service subclasses FulfillmentSettings, points it at its own .env file
and adds its service-specific keys.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class FulfillmentSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Fulfillment Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Service specific
    SERVICE_NAME: str = "fulfillment-service"

    # Database
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 5

    # Kafka for events
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    KAFKA_GROUP_ID: str = "fulfillment"
    KAFKA_CONNECT_RETRIES: int = 10
    KAFKA_RETRY_DELAY: float = 3.0
    KAFKA_REPLICATION_FACTOR: int = 1

    # Redelivery (0 means redeliver forever)
    MAX_REDELIVERIES: int = 5
    REDELIVERY_DELAY: float = 1.0

    # Outbox relay
    OUTBOX_POLL_INTERVAL: float = 1.0
    OUTBOX_BATCH_SIZE: int = 100

    @property
    def enable_file_logging(self) -> bool:
        return self.ENVIRONMENT.lower() in ["production", "staging"]
