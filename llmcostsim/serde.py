# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""(De/re)serialization helpers for saving price lists, workloads and sweep results as JSON"""

# Python Built-Ins:
from enum import Enum
import json
import logging
import os
from typing import Any, Callable, Type, TypeVar

# External Dependencies:
from upath import UPath as Path

logger = logging.getLogger(__name__)


def _to_jsonable(value: Any) -> Any:
    """Map one (possibly nested) field value to its JSON-ready representation"""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {
            (k.value if isinstance(k, Enum) else k): _to_jsonable(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, frozenset, set)):
        return [_to_jsonable(item) for item in value]
    return value


def to_dict_recursive_generic(obj: object, **kwargs) -> dict:
    """Convert a dataclass-like object (with maybe JSONable fields) to a JSON-ready dict

    The output dict is augmented with `_type` storing the `__class__.__name__` of the provided
    `obj`. Private attributes (with a leading underscore) are skipped.

    Args:
        obj: The object to convert
        **kwargs: Optional extra parameters to insert in the output dictionary
    """
    result: dict[str, Any] = {"_type": obj.__class__.__name__}
    result.update(
        {k: v for k, v in obj.__dict__.items() if not k.startswith("_")}
    )
    result.update(kwargs)
    return {k: (v if k == "_type" else _to_jsonable(v)) for k, v in result.items()}


TFromDict = TypeVar("TFromDict")


def from_dict_with_class(raw: dict, cls: Type[TFromDict], **kwargs) -> TFromDict:
    """Initialize an instance of a class from a plain dict (with optional extra kwargs)

    If the input dictionary contains a `_type` key, and this doesn't match the provided
    `cls.__name__`, a warning will be logged.
    """
    raw_args = {k: v for k, v in raw.items()}
    raw_type = raw_args.pop("_type", None)
    if raw_type is not None and raw_type != cls.__name__:
        logger.warning(
            "from_dict: _type '%s' doesn't match class '%s' being loaded. %s",
            raw_type,
            cls.__name__,
            raw,
        )
    return cls(**raw_args, **kwargs)


TJSONable = TypeVar("TJSONable", bound="JSONableBase")


class JSONableBase:
    """A base class for speeding up implementation of JSON-serializable objects

    Subclasses with nested or enum-typed fields should override `from_dict()` to re-hydrate them
    before delegating to `super().from_dict()`.
    """

    @classmethod
    def from_dict(cls: Type[TJSONable], raw: dict, **kwargs) -> TJSONable:
        """Initialize an instance of this class from a plain dict (with optional extra kwargs)"""
        return from_dict_with_class(raw=raw, cls=cls, **kwargs)

    @classmethod
    def from_file(cls: Type[TJSONable], input_path: os.PathLike | str, **kwargs) -> TJSONable:
        """Initialize an instance of this class from a (local or Cloud) JSON file"""
        input_path = Path(input_path)
        with input_path.open("r") as f:
            return cls.from_json(f.read(), **kwargs)

    @classmethod
    def from_json(cls: Type[TJSONable], json_string: str, **kwargs) -> TJSONable:
        """Initialize an instance of this class from a JSON string (with optional extra kwargs)"""
        return cls.from_dict(json.loads(json_string), **kwargs)

    def to_dict(self, **kwargs) -> dict:
        """Save the state of the object to a JSON-dumpable dictionary (with optional extra kwargs)"""
        return to_dict_recursive_generic(self, **kwargs)

    def to_file(
        self,
        output_path: os.PathLike | str,
        indent: int | str | None = 4,
        default: Callable[[Any], Any] | None = str,
        **kwargs,
    ) -> Path:
        """Save the state of the object to a (local or Cloud) JSON file

        Args:
            output_path: The path where the file will be saved. Parent folders are created.
            indent: Optional indentation passed through to `json.dumps()`
            default: Optional function to convert non-JSON-serializable objects to strings
            **kwargs: Optional extra keyword arguments to pass to `to_json()`

        Returns:
            output_path: Universal Path representation of the target file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w") as f:
            f.write(self.to_json(indent=indent, default=default, **kwargs))
        return output_path

    def to_json(self, **kwargs) -> str:
        """Serialize this object to JSON, with optional kwargs passed through to `json.dumps()`"""
        return json.dumps(self.to_dict(), **kwargs)
