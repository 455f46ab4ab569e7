"""
Order Service Event Management
Builds the broker connection and the orchestrator, connects to Kafka and
registers the consumers at startup; releases everything at shutdown.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..events.base.kafka_client import KafkaBrokerConnection
from ..events.producers import OrderEventPublisher
from ..repository.order_repository import OrderRepository
from ..services.exceptions import BrokerConnectionError, InfrastructureError
from ..services.inventory_client import InventoryClient, ProductCatalog
from ..services.notification_client import NotificationClient
from ..services.order_service import OrderOrchestrator
from ..utils.logging import setup_order_logging as setup_logging
from .setting import OrderServiceSettings, get_settings

logger = setup_logging("order_service.core.events")


def create_broker_connection(
    settings: Optional[OrderServiceSettings] = None,
) -> KafkaBrokerConnection:
    settings = settings or get_settings()
    return KafkaBrokerConnection(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        client_id=settings.KAFKA_CLIENT_ID,
        group_id=settings.KAFKA_GROUP_ID,
        replication_factor=settings.KAFKA_REPLICATION_FACTOR,
        max_retries=settings.BROKER_MAX_RETRIES,
        retry_delay=settings.BROKER_RETRY_DELAY,
        max_retry_delay=settings.BROKER_MAX_RETRY_DELAY,
        connect_timeout=settings.BROKER_CONNECT_TIMEOUT,
        ack_on_handler_error=settings.BROKER_ACK_ON_HANDLER_ERROR,
    )


def create_orchestrator(
    session_maker: async_sessionmaker[AsyncSession],
    connection: KafkaBrokerConnection,
    settings: Optional[OrderServiceSettings] = None,
) -> OrderOrchestrator:
    """Assemble the process-wide orchestrator and its collaborators"""
    settings = settings or get_settings()
    return OrderOrchestrator(
        repository=OrderRepository(session_maker),
        publisher=OrderEventPublisher(connection, settings),
        notifier=NotificationClient(),
        inventory=InventoryClient(),
        catalog=ProductCatalog(),
        settings=settings,
    )


async def init_events(
    connection: KafkaBrokerConnection, orchestrator: OrderOrchestrator
) -> bool:
    """Connect to Kafka and register consumers; degrade instead of failing"""
    try:
        await connection.connect()
    except BrokerConnectionError as e:
        logger.warning(f"⚠️ Kafka connection failed: {e.message}")
        logger.info("Service will continue without event messaging (degraded mode)")
        return False

    try:
        await orchestrator.register_consumers(connection)
    except InfrastructureError as e:
        logger.warning(f"⚠️ Event consumer registration failed: {e.message}")
        return False
    except Exception as e:
        logger.error(
            f"⚠️ Unexpected error registering event consumers: {e}", exc_info=True
        )
        return False

    logger.info("✅ Event messaging infrastructure initialized successfully")
    return True


async def close_events(
    connection: KafkaBrokerConnection, orchestrator: Optional[OrderOrchestrator] = None
) -> None:
    """Close event messaging infrastructure and the HTTP clients"""
    try:
        await connection.close()
        if orchestrator is not None:
            await orchestrator.inventory.close()
            await orchestrator.catalog.close()
        logger.info("Event messaging infrastructure closed")
    except Exception as e:
        logger.error(f"Error closing event infrastructure: {e}")


async def health_check_events(connection: Optional[KafkaBrokerConnection]) -> bool:
    """Check if event messaging is healthy"""
    if connection is None:
        return False
    status = await connection.health_check()
    return bool(status["connected"])
