"""
Base Models for Caller Input, Results and Provider Wire Documents

Three families of models flow through the engine:

    - Caller input (StrictRequest): rejects unknown fields so that a
      mismatched caller fails fast with a clear validation error.
    - Results and stored records (StrictResponse): lenient about extra
      fields, ORM-convertible.
    - Wire documents (WireModel): the JSON exchanged with reasoning
      providers. Python attributes are snake_case while the JSON keys are
      camelCase, so `model_dump(by_alias=True)` reproduces the provider
      contract exactly.

Usage:
    class MicroTask(WireModel):
        project_id: str          # serialized as "projectId"
        estimated_minutes: int   # serialized as "estimatedMinutes"

    task = MicroTask.model_validate({"projectId": "p1", "estimatedMinutes": 30})
    task.model_dump(by_alias=True)
"""

import copy
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class StrictRequest(BaseModel):
    """
    Base model for caller input with strict validation.

    Features:
        - extra="forbid": Unknown fields raise a validation error
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
        - from_attributes=True: Allows ORM model conversion
    """

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        validate_default=True,  # Validate defaults
        str_strip_whitespace=True,  # Clean string inputs
        from_attributes=True,  # Enable ORM conversion
    )


class StrictResponse(BaseModel):
    """
    Base model for results and stored records.

    Features:
        - extra="ignore": Silently ignores extra fields (DB may have more columns)
        - validate_default=True: Validates default values
        - from_attributes=True: Allows ORM model conversion
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_default=True,
        from_attributes=True,
    )


class WireModel(BaseModel):
    """
    Base model for JSON documents exchanged with reasoning providers.

    Attributes are snake_case; JSON keys are camelCase aliases. Both
    spellings are accepted on input. Unknown keys from the provider are
    dropped rather than rejected; the strict schema sent to the provider
    forbids them (see strict_json_schema).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        validate_default=True,
    )

    @model_validator(mode="before")
    @classmethod
    def drop_null_defaults(cls, data: Any) -> Any:
        """Treat an explicit null for a field with a default as absent."""
        if not isinstance(data, dict):
            return data
        defaulted = set()
        for name, field in cls.model_fields.items():
            if not field.is_required():
                defaulted.update({name, field.alias or name})
        return {key: value for key, value in data.items() if not (value is None and key in defaulted)}

    def to_wire(self) -> dict[str, Any]:
        """Dump to the provider's camelCase JSON shape, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _is_nullable(prop: dict[str, Any]) -> bool:
    if prop.get("type") == "null":
        return True
    if isinstance(prop.get("type"), list) and "null" in prop["type"]:
        return True
    return any(_is_nullable(option) for option in prop.get("anyOf", []))


def strict_json_schema(model: type[BaseModel]) -> dict[str, Any]:
    """
    Build a strict JSON schema for a wire model.

    Structured-output providers in strict mode need every object closed and
    every property listed in `required`. The returned schema is a fresh copy
    where, on every object node (including `$defs`):
        - additionalProperties is false
        - required lists every property
        - properties that were optional accept null and carry no default

    WireModel treats a null for a defaulted field as absent, so the model's
    default still applies when the provider fills an optional slot with null.

    Args:
        model: Pydantic model class to describe

    Returns:
        JSON schema dict suitable for a `json_schema` response format
    """
    schema = copy.deepcopy(model.model_json_schema(by_alias=True))

    def _close(node: Any) -> None:
        if isinstance(node, dict):
            if node.get("type") == "object" and "properties" in node:
                node["additionalProperties"] = False
                required = set(node.get("required", []))
                properties = node["properties"]
                for name, prop in list(properties.items()):
                    if name in required:
                        continue
                    prop.pop("default", None)
                    if not _is_nullable(prop):
                        properties[name] = {"anyOf": [prop, {"type": "null"}]}
                node["required"] = list(properties)
            for value in node.values():
                _close(value)
        elif isinstance(node, list):
            for item in node:
                _close(item)

    _close(schema)
    return schema
