from .object_store import ObjectStore, StorageResult, build_storage_path, create_object_store

__all__ = ["ObjectStore", "StorageResult", "build_storage_path", "create_object_store"]
