"""JSON Schema of request files."""

from functools import cache
from json import dumps

from pydantic.json_schema import GenerateJsonSchema, JsonSchemaValue

from pytest_ply.schema.requests import Request

#: Request fields filled in by the loader, never written in files.
BOOKKEEPING_FIELDS = frozenset({'name', 'type', 'start_line', 'end_line'})


class SchemaGenerator(GenerateJsonSchema):
    """JSON Schema generator for request files.

    A request file is an object mapping request names to request
    definitions. Fields maintained by the loader are not part of the
    definition schema.
    """

    @classmethod
    def definition_schema(cls) -> JsonSchemaValue:
        """Schema of one request definition."""
        schema = Request.model_json_schema(schema_generator=cls)

        schema['properties'] = {
            name: value
            for name, value in schema.get('properties', {}).items()
            if name not in BOOKKEEPING_FIELDS
        }
        schema['required'] = [
            name
            for name in schema.get('required', ())
            if name not in BOOKKEEPING_FIELDS
        ]
        schema['additionalProperties'] = False

        return schema

    @classmethod
    @cache
    def make_schema(cls, indent: int | str | None = 4) -> str:
        """Generate the JSON Schema for request files.

        Args:
            indent: Indentation level used for JSON formatting.

        Returns:
            Serialized JSON Schema string.
        """
        schema = {
            'title': 'pytest-ply',
            'description': 'JSON Schema for pytest-ply request files',
            '$schema': cls.schema_dialect,
            'type': 'object',
            'additionalProperties': cls.definition_schema(),
        }

        return dumps(
            schema,
            ensure_ascii=False,
            sort_keys=True,
            indent=indent,
        )
