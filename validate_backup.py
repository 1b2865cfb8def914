#!/usr/bin/env python3
"""Validate garage backup files against the backup schema."""
import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from jsonschema import ValidationError, validate

from garage.backup import BACKUP_VERSION, load_schema


def validate_backup_file(filepath: Path, schema: dict) -> List[str]:
    """Validate a single backup file. Returns list of errors."""
    errors = []
    try:
        with open(filepath) as f:
            data = json.load(f)
        if isinstance(data, dict) and data.get("version") != BACKUP_VERSION:
            errors.append(f"Unsupported backup version: {data.get('version')}")
        validate(instance=data, schema=schema)
    except json.JSONDecodeError as e:
        errors.append(f"JSON parse error: {e}")
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
    except OSError as e:
        errors.append(f"Error: {e}")
    return errors


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Validate each backup file given, or every *.json file in a directory."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Backup files or directories containing them",
    )
    args = parser.parse_args(argv)

    schema = load_schema()

    files = []
    for path in args.paths:
        if path.is_dir():
            files.extend(sorted(path.glob("*.json")))
        else:
            files.append(path)

    if not files:
        print("Warning: No backup files found")
        return 0

    all_valid = True
    for filepath in files:
        errors = validate_backup_file(filepath, schema)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
