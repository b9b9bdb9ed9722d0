"""Object storage for the cloud image path, on a GridFS bucket."""
import logging
from typing import Any, Dict

import gridfs
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import NotFound, UpstreamError

logger = logging.getLogger(__name__)


class ObjectStorage:
    def __init__(self, db: Database, bucket: str, url_prefix: str = "/api/v1/upload/cloud"):
        self.db = db
        self.bucket = bucket
        self.url_prefix = url_prefix
        self.fs = gridfs.GridFS(db, collection=bucket)

    @property
    def files(self):
        return self.db[f"{self.bucket}.files"]

    def _find(self, key: str) -> Dict[str, Any]:
        doc = self.files.find_one({"filename": key})
        if doc is None:
            raise NotFound("File not found")
        return doc

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.fs.put(data, filename=key, contentType=content_type, metadata={"contentType": content_type, "public": False})
        except PyMongoError as exc:
            logger.error("Error uploading file %s: %s", key, exc)
            raise UpstreamError("Failed to upload file") from exc
        logger.info("Uploaded %s to bucket %s", key, self.bucket)
        return key

    def make_public(self, key: str) -> str:
        self._find(key)
        self.files.update_one({"filename": key}, {"$set": {"metadata.public": True}})
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"

    def delete(self, key: str) -> None:
        doc = self._find(key)
        self.fs.delete(doc["_id"])
        logger.info("Deleted %s from bucket %s", key, self.bucket)

    def get_metadata(self, key: str) -> Dict[str, Any]:
        doc = self._find(key)
        metadata = doc.get("metadata") or {}
        return {
            "name": doc["filename"],
            "bucket": self.bucket,
            "contentType": metadata.get("contentType") or doc.get("contentType"),
            "size": doc.get("length"),
            "uploadDate": doc.get("uploadDate"),
            "public": bool(metadata.get("public")),
        }

    def read(self, key: str) -> bytes:
        doc = self._find(key)
        return self.fs.get(doc["_id"]).read()
