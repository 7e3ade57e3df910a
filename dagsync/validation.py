"""Loading JSON documents validated against their declared schema.

A document opts into validation with a top-level ``$schema`` key holding a
path relative to the document (``./season.schema.json``). Documents
without a local schema reference are returned as-is.
"""

import json
import logging
from pathlib import Path
from typing import Any

from jsonschema import SchemaError, validators

from .exceptions import DagSyncFileError, DagSyncValidationError

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise DagSyncFileError(path, e.strerror or str(e)) from e
    except ValueError as e:
        raise DagSyncValidationError(f"{path} is not valid JSON: {e}") from e


def local_schema_path(document: Any, document_path: Path):
    """Return the schema path a document refers to, or None.

    Only relative references (``./`` or ``../``) are resolved; remote
    schema URLs are left to other tools.
    """
    if not isinstance(document, dict):
        return None
    schema = document.get("$schema")
    if isinstance(schema, str) and schema.startswith(("./", "../")):
        return document_path.parent / schema
    return None


def load_validated(path: Path) -> Any:
    """Load a JSON document and validate it against its local schema.

    Args:
        path: Path to the JSON document

    Returns:
        The parsed document

    Raises:
        DagSyncFileError: If the document or its schema cannot be read
        DagSyncValidationError: If either file is not JSON, the schema is
            invalid or the document violates it
    """
    path = Path(path)
    document = _read_json(path)

    schema_path = local_schema_path(document, path)
    if schema_path is None:
        logger.debug(f"No local schema declared in {path}, skipping validation")
        return document

    schema = _read_json(schema_path)
    validator_class = validators.validator_for(schema)
    try:
        validator_class.check_schema(schema)
    except SchemaError as e:
        raise DagSyncValidationError(f"Invalid schema {schema_path}: {e.message}") from e

    errors = []
    for error in validator_class(schema).iter_errors(document):
        location = "/".join(str(part) for part in error.absolute_path) or "<root>"
        errors.append(f"{location}: {error.message}")
    errors.sort()

    if errors:
        raise DagSyncValidationError(
            f"{path} failed schema validation against {schema_path} "
            f"({len(errors)} error(s))",
            errors=errors,
        )

    logger.debug(f"{path} is valid against {schema_path}")
    return document
