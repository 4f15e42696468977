#!/usr/bin/env python3
"""
Export, import and check FormForge form schemas as a JSON file.

Usage:
    # Export every saved form to a file
    python manage_forms.py export --output forms.json

    # Import forms from a file (existing forms are kept unless --replace-existing)
    python manage_forms.py import --input forms.json

    # Check a file offline: parse every schema and report diagnostics
    python manage_forms.py check --input forms.json

    # Override MongoDB connection (optional)
    python manage_forms.py export --output forms.json --mongo-uri "mongodb://..." --db-name "mydb"
"""
import argparse
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
from pymongo import MongoClient

from formforge.builder import check_schema
from formforge.database import document_to_form
from formforge.schemas import FormSchema

# Load environment variables
load_dotenv()


def get_mongo_config(mongo_uri=None, db_name=None):
    """Get MongoDB configuration from args or environment."""
    if not mongo_uri:
        mongo_uri = os.getenv("MONGO_URI")
    if not db_name:
        db_name = os.getenv("DB_NAME")

    if not mongo_uri or not db_name:
        raise ValueError(
            "MongoDB configuration not found. "
            "Set MONGO_URI and DB_NAME in .env file or use --mongo-uri and --db-name arguments."
        )

    return mongo_uri, db_name


def get_forms_collection(mongo_uri, db_name):
    client = MongoClient(mongo_uri, serverSelectionTimeoutMS=5000)
    return client[db_name]["forms"]


def load_forms_file(path):
    """
    Parse a JSON file holding one form or a list of forms.

    Returns (forms, failures) where failures are printable messages for the
    entries that are not valid form schemas.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]

    forms, failures = [], []
    for i, entry in enumerate(data):
        try:
            forms.append(FormSchema.model_validate(entry))
        except PydanticValidationError as e:
            label = entry.get("id", f"#{i}") if isinstance(entry, dict) else f"#{i}"
            failures.append(f"Form {label}: {e.error_count()} validation errors\n{e}")
    return forms, failures


def dump_forms_file(forms, path):
    payload = [form.model_dump(mode="json") for form in forms]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def export_forms(collection, path):
    """Write every stored form to ``path``; returns the number of forms."""
    forms = [FormSchema.model_validate(document_to_form(doc)) for doc in collection.find({})]
    dump_forms_file(forms, path)
    return len(forms)


def import_forms(collection, forms, replace_existing=False):
    """Upsert forms into the collection; returns (written, skipped) counts."""
    written, skipped = 0, 0
    for form in forms:
        if not replace_existing and collection.find_one({"_id": form.id}):
            print(f"  skipped {form.id}: already exists")
            skipped += 1
            continue
        doc = form.model_dump()
        doc["_id"] = form.id
        collection.replace_one({"_id": form.id}, doc, upsert=True)
        written += 1
    return written, skipped


def print_issues(forms):
    """Print diagnostics for each form; returns the total issue count."""
    total = 0
    for form in forms:
        issues = check_schema(form)
        total += len(issues)
        status = "✓" if not issues else "✗"
        print(f"{status} {form.id} ({form.name}): {len(form.fields)} fields, {len(issues)} issues")
        for issue in issues:
            print(f"    [{issue.code}] {issue.fieldId}: {issue.detail}")
    return total


def check_command(args):
    """Handle check command."""
    input_file = Path(args.input).resolve()
    if not input_file.exists():
        print(f"ERROR: Input file not found: {input_file}")
        return 1

    try:
        forms, failures = load_forms_file(input_file)
    except json.JSONDecodeError as e:
        print(f"ERROR: {input_file} is not valid JSON: {e}")
        return 1

    for failure in failures:
        print(f"ERROR: {failure}")
    issue_count = print_issues(forms)

    print(f"\nChecked {len(forms) + len(failures)} forms: {len(failures)} invalid, {issue_count} issues")
    return 1 if failures or issue_count else 0


def export_command(args):
    """Handle export command."""
    output_file = Path(args.output).resolve()
    output_file.parent.mkdir(parents=True, exist_ok=True)

    try:
        mongo_uri, db_name = get_mongo_config(args.mongo_uri, args.db_name)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    count = export_forms(get_forms_collection(mongo_uri, db_name), output_file)
    print(f"✓ Exported {count} forms to: {output_file}")
    return 0


def import_command(args):
    """Handle import command."""
    input_file = Path(args.input).resolve()
    if not input_file.exists():
        print(f"ERROR: Input file not found: {input_file}")
        return 1

    try:
        mongo_uri, db_name = get_mongo_config(args.mongo_uri, args.db_name)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    forms, failures = load_forms_file(input_file)
    if failures:
        for failure in failures:
            print(f"ERROR: {failure}")
        print("\n✗ Import aborted, fix the invalid forms first")
        return 1

    written, skipped = import_forms(get_forms_collection(mongo_uri, db_name), forms, args.replace_existing)
    print(f"✓ Imported {written} forms ({skipped} skipped) into '{db_name}'")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(
        description="Export, import and check FormForge form schemas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    export_parser = subparsers.add_parser("export", help="Export all forms to a JSON file")
    export_parser.add_argument("--output", required=True, help="Output JSON file")
    export_parser.add_argument("--mongo-uri", help="MongoDB URI (overrides .env)")
    export_parser.add_argument("--db-name", help="Database name (overrides .env)")

    import_parser = subparsers.add_parser("import", help="Import forms from a JSON file")
    import_parser.add_argument("--input", required=True, help="Input JSON file")
    import_parser.add_argument("--mongo-uri", help="MongoDB URI (overrides .env)")
    import_parser.add_argument("--db-name", help="Database name (overrides .env)")
    import_parser.add_argument("--replace-existing", action="store_true",
                               help="Overwrite forms that already exist")

    check_parser = subparsers.add_parser("check", help="Validate a JSON file of forms offline")
    check_parser.add_argument("--input", required=True, help="Input JSON file")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "export":
        return export_command(args)
    elif args.command == "import":
        return import_command(args)
    elif args.command == "check":
        return check_command(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
