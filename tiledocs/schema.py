"""JSON Schema validation for document content.

Schemas are plain JSON Schema documents (required fields, per-field types,
string length bounds and the rest of the vocabulary). Validation here is pure;
loading a schema by its commit id is the store's and client's job.
"""
from typing import List
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from .errors import InvalidInput, SchemaViolation

SCHEMA_FAMILY = 'schema'


def check_definition(definition) -> None:
    if not isinstance(definition, dict):
        raise InvalidInput('schema definition must be a JSON object')
    try:
        validator_for(definition).check_schema(definition)
    except SchemaError as e:
        raise InvalidInput(f'invalid schema definition: {e.message}')


def schema_errors(content, definition: dict) -> List[str]:
    validator = validator_for(definition)(definition)
    errors = sorted(validator.iter_errors(content), key=lambda e: [str(p) for p in e.path])
    out = []
    for e in errors:
        where = '/'.join(str(p) for p in e.path)
        out.append(f'{where}: {e.message}' if where else e.message)
    return out


def validate(content, definition: dict) -> bool:
    return not schema_errors(content, definition)


def enforce(content, definition: dict, schema_ref: str = None) -> None:
    errors = schema_errors(content, definition)
    if errors:
        raise SchemaViolation(f'content does not match schema {schema_ref or ""}'.strip(),
                              extra={'schema': schema_ref, 'errors': errors})
