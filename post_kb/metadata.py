"""Convert chunk metadata to and from vector-store metadata primitives."""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Tuple

from .schemas import ChunkMetadata, MetadataValue

CONTENT_KEY = "content"
_OPTIONAL_FIELDS = ("subcategory", "pillar", "postType")


class MetadataCodec:
    """Flatten ``ChunkMetadata`` (plus chunk text) into store-compatible values.

    Optional fields are written as empty strings, since most stores reject
    nulls in metadata. Subclasses decide how list fields are written.
    """

    def encode(self, metadata: ChunkMetadata, content: str) -> Dict[str, MetadataValue]:
        data = metadata.model_dump(by_alias=True)
        encoded: Dict[str, MetadataValue] = {CONTENT_KEY: content}
        for key, value in data.items():
            if value is None:
                encoded[key] = ""
            elif isinstance(value, list):
                encoded[key] = self.encode_list(value)
            else:
                encoded[key] = value
        return encoded

    def decode(self, raw: Mapping[str, Any]) -> Tuple[str, ChunkMetadata]:
        data = {key: value for key, value in raw.items() if key != CONTENT_KEY}
        for key in _OPTIONAL_FIELDS:
            if data.get(key) == "":
                data[key] = None
        data["keywords"] = self.decode_list(data.get("keywords"))
        return str(raw.get(CONTENT_KEY, "")), ChunkMetadata.model_validate(data)

    def encode_list(self, values: list) -> MetadataValue:
        raise NotImplementedError

    def decode_list(self, value: Any) -> list:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return list(json.loads(value))
        return list(value)


class JsonArrayMetadataCodec(MetadataCodec):
    """Lists become JSON strings, for stores without array metadata."""

    def encode_list(self, values: list) -> MetadataValue:
        return json.dumps(values)


class NativeArrayMetadataCodec(MetadataCodec):
    """Lists of strings are stored as-is, so stores can filter on them."""

    def encode_list(self, values: list) -> MetadataValue:
        return [str(value) for value in values]
