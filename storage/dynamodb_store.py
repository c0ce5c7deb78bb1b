"""DynamoDB-backed key/value store for concert caches."""
import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from storage.cache_store import CacheStore, StorageError

logger = logging.getLogger(__name__)


class DynamoDBCacheStore(CacheStore):
    """Store keeping one item per cache key in a DynamoDB table.

    Table layout: hash key ``cache_key`` (S), value attribute ``value`` (S).
    """

    KEY_ATTRIBUTE = 'cache_key'
    VALUE_ATTRIBUTE = 'value'

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region (default: from the environment)
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBCacheStore for table: {table_name}")

    def get(self, key: str) -> Optional[str]:
        # Read own writes
        try:
            response = self.table.get_item(
                Key={self.KEY_ATTRIBUTE: key},
                ConsistentRead=True
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading '{key}' from DynamoDB: {e}")
            raise StorageError(str(e)) from e

        item = response.get('Item')
        if not item:
            return None
        value = item.get(self.VALUE_ATTRIBUTE)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        # Full replace of the item
        try:
            self.table.put_item(Item={
                self.KEY_ATTRIBUTE: key,
                self.VALUE_ATTRIBUTE: value,
            })
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error writing '{key}' to DynamoDB: {e}")
            raise StorageError(str(e)) from e

    def delete(self, key: str) -> None:
        try:
            self.table.delete_item(Key={self.KEY_ATTRIBUTE: key})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting '{key}' from DynamoDB: {e}")
            raise StorageError(str(e)) from e
