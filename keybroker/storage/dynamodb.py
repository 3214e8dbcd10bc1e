"""DynamoDB-backed storage.

Table layout: partition key ``key`` (string), binary attribute ``value``.
"""

import asyncio

from keybroker.storage.base import Storage, StorageEntry, children


class DynamoDBStorage(Storage):
    """Stores each entry as one item. boto3 calls run in a worker thread."""

    def __init__(self, table_name: str, region: str = "us-east-1"):
        self._table_name = table_name
        self._region = region
        self._table = None

    def _get_table(self):
        """Lazy-init boto3 Table resource."""
        if self._table is None:
            import boto3

            dynamodb = boto3.resource("dynamodb", region_name=self._region)
            self._table = dynamodb.Table(self._table_name)
        return self._table

    async def get(self, key: str) -> StorageEntry | None:
        item = await asyncio.to_thread(self._get_item, key)
        if item is None:
            return None
        return StorageEntry(key=key, value=bytes(item["value"]))

    async def put(self, entry: StorageEntry) -> None:
        await asyncio.to_thread(
            self._get_table().put_item,
            Item={"key": entry.key, "value": entry.value},
        )

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._get_table().delete_item, Key={"key": key})

    def _get_item(self, key: str) -> dict | None:
        resp = self._get_table().get_item(Key={"key": key}, ConsistentRead=True)
        return resp.get("Item")

    def _scan_keys(self, prefix: str) -> list[str]:
        """Scan all pages for keys starting with prefix."""
        from boto3.dynamodb.conditions import Attr

        table = self._get_table()
        kwargs = {
            "FilterExpression": Attr("key").begins_with(prefix),
            "ProjectionExpression": "#k",
            "ExpressionAttributeNames": {"#k": "key"},
        }
        keys: list[str] = []
        while True:
            resp = table.scan(**kwargs)
            keys.extend(item["key"] for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return keys
            kwargs["ExclusiveStartKey"] = last_key

    async def list(self, prefix: str) -> list[str]:
        keys = await asyncio.to_thread(self._scan_keys, prefix)
        return children(keys, prefix)
