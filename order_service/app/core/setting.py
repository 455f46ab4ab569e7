"""
Order Service configuration using shared patterns
"""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the order service directory path
ORDER_SERVICE_DIR = Path(__file__).parent.parent.parent
ENV_FILE = ORDER_SERVICE_DIR / ".env"


class OrderServiceSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Order Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Service specific
    SERVICE_NAME: str = "order-service"

    # Database
    ORDER_DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Kafka broker
    KAFKA_BOOTSTRAP_SERVERS: str
    KAFKA_GROUP_ID: str = "order-service-consumers"
    KAFKA_CLIENT_ID: str = "order-service"
    KAFKA_REPLICATION_FACTOR: int = 1

    # Broker reconnection policy
    BROKER_MAX_RETRIES: int = 10
    BROKER_RETRY_DELAY: float = 1.0
    BROKER_MAX_RETRY_DELAY: float = 30.0
    BROKER_CONNECT_TIMEOUT: float = 30.0
    # True: failing messages are acked (at-most-once), False: redelivered
    BROKER_ACK_ON_HANDLER_ERROR: bool = True

    # Durable queues (Kafka topics)
    QUEUE_ORDER_CREATED: Optional[str] = None
    QUEUE_ORDER_SHIPPED: Optional[str] = None
    QUEUE_ORDER_DELIVERED: Optional[str] = None
    QUEUE_ORDER_FAILED_STOCK: str = "order.failed.stock"

    # External Service URLs
    NOTIFICATION_SERVICE_URL: Optional[str] = None
    INVENTORY_SERVICE_URL: str = "http://product_service:8000"
    PRODUCT_SERVICE_URL: str = "http://product_service:8000"
    HTTP_CLIENT_TIMEOUT: float = 10.0

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["*"]
    CORS_HEADERS: List[str] = ["*"]


# Create a singleton instance
_settings_instance: Optional[OrderServiceSettings] = None


def get_settings() -> OrderServiceSettings:
    """Get settings singleton instance"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = OrderServiceSettings()  # type: ignore[call-arg]
    return _settings_instance
