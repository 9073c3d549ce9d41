"""JSON Schema of the suite configuration document."""

from functools import cache
from json import dumps
from typing import TYPE_CHECKING

from pydantic.json_schema import GenerateJsonSchema, JsonSchemaValue

from tfcases.schema import SuiteConfig

if TYPE_CHECKING:
    from pydantic_core import core_schema as core


class SchemaGenerator(GenerateJsonSchema):
    """JSON Schema generator for `tfcases.yaml` documents.

    Fields marked with an `x-ref` extra are emitted once under the
    schema definitions and referenced from every place they appear.
    """

    @classmethod
    @cache
    def make_schema(cls, indent: int | str | None = 4) -> str:
        """Generate the JSON Schema of suite configuration documents.

        Args:
            indent: Indentation level used for JSON formatting.

        Returns:
            Serialized JSON Schema string.
        """
        schema = {
            **SuiteConfig.model_json_schema(
                schema_generator=cls,
                union_format='primitive_type_array',
            ),
            'title': 'tfcases',
            'description': 'JSON Schema for tfcases suite configuration documents',
            '$schema': cls.schema_dialect,
        }

        return dumps(
            schema,
            ensure_ascii=False,
            sort_keys=True,
            indent=indent,
        )

    def generate_inner(self, schema: 'core.CoreSchema') -> JsonSchemaValue:
        """Generates a JSON schema for a given core schema.

        Args:
            schema: The given core schema.

        Returns:
            The generated JSON schema.
        """
        json_schema = super().generate_inner(schema)

        if ref_id := json_schema.get('x-ref'):
            ref_def, ref_link = self.get_cache_defs_ref_schema(ref_id)
            self.definitions[ref_def] = json_schema
            return ref_link

        return json_schema
