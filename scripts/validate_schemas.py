"""Checks that every live event schema loads and none the service needs is missing."""

import sys

from jsonschema.exceptions import SchemaError

from livebid.validation.validator import SCHEMA_DIR, SchemaRegistry

REQUIRED_SCHEMAS = ("join", "bid_event", "select_winner", "status_change")


def main() -> int:
    try:
        registry = SchemaRegistry(SCHEMA_DIR)
    except SchemaError as exc:
        print(f"invalid schema: {exc.message}")
        return 1
    for name in registry.names:
        print(f"ok {name}")
    missing = sorted(set(REQUIRED_SCHEMAS) - set(registry.names))
    if missing:
        print(f"missing schemas: {', '.join(missing)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
