from functools import lru_cache
from azure.cosmos import CosmosClient
from azure.identity import DefaultAzureCredential
from scheduling.configuration.config import Config
from scheduling.services.svc_store import ScheduleStore

@lru_cache(maxsize=1)
def get_database():
    """
    Create the Cosmos client on first use and return the database client.
    Every container is partitioned by /id.
    """
    credential = DefaultAzureCredential()
    client = CosmosClient(
        url=Config.COSMOSDB_ENDPOINT,
        credential=credential
    )
    return client.get_database_client(Config.COSMOSDB_DATABASE_NAME)

def get_container(container_key: str):
    """
    Provides the CosmosDB container client
    Args:
        container_key (str): Key of the container to get (bookings, appointments, etc.)
    Returns:
        Container client for the specified container
    """
    if container_key not in Config.COSMOSDB_CONTAINER_NAME:
        raise ValueError(f"Container {container_key} not found")
    return get_database().get_container_client(Config.COSMOSDB_CONTAINER_NAME[container_key])

def get_schedule_store():
    """Dependency injection function for FastAPI endpoints."""
    return ScheduleStore({key: get_container(key) for key in Config.COSMOSDB_CONTAINER_NAME})
