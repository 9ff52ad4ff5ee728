"""Serialization of stored values to payload bytes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from keychain_manager.errors import InvalidDataError

T = TypeVar("T")


class RecordCodec(ABC):
    """Converts application values to the opaque bytes the vault stores.

    ``decode`` must raise ``InvalidDataError`` for bytes it cannot turn
    back into *value_type*.
    """

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Serialize *value* to payload bytes."""

    @abstractmethod
    def decode(self, data: bytes, value_type: type[T]) -> T:
        """Deserialize payload bytes into an instance of *value_type*."""


class JSONCodec(RecordCodec):
    """JSON payloads via pydantic, so models, dataclasses and scalars all work."""

    def encode(self, value: Any) -> bytes:
        try:
            return TypeAdapter(type(value)).dump_json(value)
        except (PydanticSerializationError, TypeError) as exc:
            raise InvalidDataError.because(f"Cannot encode {type(value).__name__}: {exc}") from exc

    def decode(self, data: bytes, value_type: type[T]) -> T:
        try:
            return TypeAdapter(value_type).validate_json(data)
        except ValidationError as exc:
            raise InvalidDataError.because(
                f"Stored payload is not a valid {getattr(value_type, '__name__', value_type)}"
            ) from exc
