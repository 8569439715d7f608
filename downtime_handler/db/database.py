from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection

from downtime_handler.config import Settings


def create_client(settings: Settings) -> AsyncMongoClient:
    # connects lazily on the first operation
    return AsyncMongoClient(settings.DATABASE_URL)


def get_collection(client: AsyncMongoClient, settings: Settings) -> AsyncCollection:
    return client[settings.DB_NAME][settings.DB_COLLECTION]
