"""Service layer: the operation facade consumed by transport bindings."""

from tea_services.collection_api import CollectionApi, error_payload

__all__ = ["CollectionApi", "error_payload"]
