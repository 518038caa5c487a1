"""
Utility wrapper for storing the credential record in DynamoDB.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from vertex_gateway.core.config import StorageSettings
from vertex_gateway.core.errors import StorageError


class DynamoDBClient:
    """Get/put access to a (pk, sk) keyed table."""

    def __init__(self, settings: StorageSettings, *, table: Any = None) -> None:
        self._settings = settings
        if table is None:
            if not settings.dynamodb_table_name:
                raise StorageError(
                    "DYNAMODB_TABLE_NAME must be set when CREDENTIAL_STORE_BACKEND=dynamodb."
                )
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    def put_item(self, item: Dict[str, Any]) -> None:
        """Put an item in the DynamoDB table."""
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"DynamoDB put_item failed: {exc}") from exc

    def get_item(
        self, *, partition_key: str, sort_key: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Retrieve an item using its key."""
        key: Dict[str, Any] = {"pk": partition_key}
        if sort_key is not None:
            key["sk"] = sort_key
        try:
            response = self._table.get_item(Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"DynamoDB get_item failed: {exc}") from exc
        return response.get("Item")


__all__ = ["DynamoDBClient"]
