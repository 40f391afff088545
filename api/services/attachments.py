# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Content-addressed attachment storage for captured signatures.

Signatures arrive from the signing pad as data URLs or plain base64 and are
stored once per SHA-256 digest; records keep only the reference.
"""

import base64
import binascii
import hashlib
import logging
import re
from typing import Tuple, Union

from opentelemetry import trace

from domain.errors import NotFoundError
from models.base import utcnow
from models.entities import AttachmentRef
from .mongodb import ATTACHMENTS, MongoDBService
from .repositories import AttachmentStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_SIGNATURE_BYTES = 2 * 1024 * 1024

_DATA_URL = re.compile(r"^data:(?P<type>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*?)(?P<b64>;base64)?,(?P<data>.*)$", re.S)


def decode_signature(value: Union[str, bytes]) -> Tuple[bytes, str]:
    """
    Decode a signature payload into bytes and a content type.

    Raises:
        ValueError: If the payload is empty, not valid base64 or too large.
    """
    if isinstance(value, (bytes, bytearray)):
        content, content_type = bytes(value), DEFAULT_CONTENT_TYPE
    else:
        text = (value or "").strip()
        if not text:
            raise ValueError("Signature is empty")
        match = _DATA_URL.match(text)
        if match:
            content_type = match.group("type") or DEFAULT_CONTENT_TYPE
            payload = match.group("data")
            if not match.group("b64"):
                raise ValueError("Signature data URL must be base64 encoded")
        else:
            content_type, payload = DEFAULT_CONTENT_TYPE, text
        try:
            content = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("Signature is not valid base64")

    if not content:
        raise ValueError("Signature is empty")
    if len(content) > MAX_SIGNATURE_BYTES:
        raise ValueError(f"Signature exceeds {MAX_SIGNATURE_BYTES} bytes")
    return content, content_type


def store_signature(store: AttachmentStore, value: Union[str, bytes]) -> AttachmentRef:
    """Decode and store a signature, returning its reference."""
    content, content_type = decode_signature(value)
    return store.put(content, content_type)


class MongoAttachmentStore:
    """Attachments kept in MongoDB, keyed by digest."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    @property
    def collection(self):
        return self.mongo_service.get_collection(ATTACHMENTS)

    def put(self, content: bytes, content_type: str) -> AttachmentRef:
        with tracer.start_as_current_span("attachments.put") as span:
            digest = hashlib.sha256(content).hexdigest()
            span.set_attributes({"attachment.sha256": digest, "attachment.size": len(content)})
            self.collection.update_one(
                {"_id": digest},
                {"$setOnInsert": {
                    "content": content,
                    "contentType": content_type,
                    "size": len(content),
                    "createdAt": utcnow()
                }},
                upsert=True
            )
            return AttachmentRef(sha256=digest, content_type=content_type, size=len(content))

    def get(self, sha256: str) -> bytes:
        document = self.collection.find_one({"_id": sha256})
        if document is None:
            raise NotFoundError("Attachment", sha256)
        return bytes(document["content"])

    def exists(self, sha256: str) -> bool:
        return self.collection.count_documents({"_id": sha256}, limit=1) > 0
