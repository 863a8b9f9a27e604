#!/usr/bin/env python3
"""
DatoGPT - LLM-backed content generation for DatoCMS records

Main entry point for DatoGPT. Works on a record stored as a JSON file (see
``datogpt.cms.load_record_file``): generates, improves or translates its
fields and writes the results back into the file.
"""

import logging
import sys
import argparse
from typing import Optional

from datogpt.actions import FieldActions
from datogpt.bulk import BulkOrchestrator
from datogpt.cms import DatoClient, InMemoryAssetStore, InMemoryRecord, load_record_file, save_record_file
from datogpt.config import PluginSettings, config
from datogpt.database import DatabaseManager
from datogpt.errors import DatoGPTError
from datogpt.generation import (
    AVAILABLE_RESOLUTIONS,
    CANDIDATE_COUNTS,
    AltTextGenerator,
    AssetGenerator,
    FieldValueGenerationEngine,
)
from datogpt.oracle import OracleClient
from datogpt.prompts import PromptBuilder
from datogpt.translation import RecordTranslator, TranslationEngine


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def print_progress(label: str, locale: str):
    print(f"  ... {label} [{locale}]")


class Session:
    """
    Wires the oracle, CMS collaborators and engines for one CLI run.
    """

    def __init__(self, record_path: str, locale: Optional[str] = None, use_dato: bool = False):
        self.record_path = record_path
        self.record, schema = load_record_file(record_path)
        if locale:
            self.record.current_locale = locale
        self.settings = PluginSettings.from_config(config)

        self.db: Optional[DatabaseManager] = None
        if config.log_calls:
            self.db = DatabaseManager(config.database_filename)
            self.db.connect()
            self.db.initialize_database()

        self.oracle = OracleClient(database_manager=self.db)
        self.dato: Optional[DatoClient] = DatoClient() if use_dato else None
        self.schema = self.dato or schema
        asset_store = self.dato or InMemoryAssetStore()

        prompts = PromptBuilder.from_config(config)
        self.assets = AssetGenerator(self.oracle, asset_store, database_manager=self.db)
        self.engine = FieldValueGenerationEngine(
            self.oracle,
            self.schema,
            self.settings,
            prompt_builder=prompts,
            asset_generator=self.assets,
            on_step=lambda step: print(f"  ... {step}")
        )
        self.translator = TranslationEngine(self.oracle, self.schema, prompts)
        self.actions = FieldActions(
            self.record,
            self.engine,
            self.translator,
            self.settings,
            alt_generator=AltTextGenerator(self.oracle, asset_store, prompts)
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def save(self):
        save_record_file(self.record_path, self.record)
        logging.info(f"Record saved to {self.record_path}")

    def close(self):
        self.oracle.close()
        if self.dato:
            self.dato.close()
        if self.db:
            self.db.disconnect()


def print_record_changes(record: InMemoryRecord):
    if not record.writes:
        print("\nNo fields were changed.")
        return
    print("\nUpdated fields:")
    for path, _ in record.writes:
        print(f"- {path}")


def run_generate(args):
    """Generate or improve a single field, or the whole record with --all."""
    if not args.all and not args.field:
        raise ValueError("A field API key is required unless --all is given")

    with Session(args.record, args.locale, args.dato) as session:
        # Fields written before a failure are kept.
        try:
            if args.all:
                orchestrator = BulkOrchestrator(session.engine, session.settings, resolution=args.resolution)
                orchestrator.run_all(
                    session.record,
                    args.instruction,
                    is_improve=args.improve,
                    on_start=print_progress
                )
            else:
                session.actions.generate_field(
                    args.field,
                    args.instruction,
                    is_improve=args.improve,
                    resolution=args.resolution
                )
        finally:
            session.save()
        print_record_changes(session.record)


def run_translate(args):
    """Translate a single field, or every localized field with --all."""
    with Session(args.record, args.locale, args.dato) as session:
        if args.all:
            targets = [args.to] if args.to else None
            RecordTranslator(session.translator, session.settings).translate_record(
                session.record,
                target_locales=targets,
                on_start=print_progress
            )
        elif not args.field:
            raise ValueError("A field API key is required unless --all is given")
        elif args.from_locale:
            session.actions.translate_from(args.field, args.from_locale)
        else:
            session.actions.translate_field(args.field, args.to or "all")
        session.save()
        print_record_changes(session.record)


def run_alts(args):
    """Write alt text for the assets of a media field."""
    with Session(args.record, args.locale, args.dato) as session:
        updated = session.actions.generate_alts(args.field)
        session.save()
        print(f"\nAlt text written for {updated} asset(s).")
        for notice in session.record.notices:
            print(f"- {notice}")


def run_images(args):
    """Generate image candidates for a prompt, as the asset browser does."""
    with Session(args.record, args.locale, args.dato) as session:
        candidates = session.assets.generate_candidates(args.prompt, args.count, args.resolution)
        print(f"\nGenerated {len(candidates)} candidate(s):")
        for index, candidate in enumerate(candidates):
            if candidate.failed:
                print(f"{index}: failed - {candidate.error}")
            else:
                print(f"{index}: {candidate.url}")

        if args.upload and not candidates[0].failed:
            asset = session.assets.upload_candidate(candidates[0], args.prompt, session.record.current_locale)
            print(f"\nUploaded candidate 0 as asset {asset.asset_id}")


def run_actions(args):
    """List the actions available for every field of the record."""
    with Session(args.record, args.locale, args.dato) as session:
        print(f"\nActions for locale {session.record.current_locale}:")
        for field in session.record.list_fields():
            actions = session.actions.available_actions(field.api_key)
            print(f"{field.api_key:<25} {', '.join(actions) or '-'}")


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="DatoGPT - LLM-backed content generation for DatoCMS records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py generate record.json title -i "A post about tomatoes"
  python main.py generate record.json body -i "More concise" --improve
  python main.py generate record.json --all -i "A post about tomatoes"
  python main.py translate record.json title                # current locale to all others
  python main.py translate record.json title --from en --locale it
  python main.py translate record.json --all
  python main.py alts record.json cover
  python main.py images record.json "A tomato on a wooden table" --count 4
  python main.py actions record.json --locale it
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version="DatoGPT 0.1.0"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("record", help="Path to the JSON record file")
    common.add_argument("--locale", help="Locale the editor is working in (default: the record's current locale)")
    common.add_argument("--dato", action="store_true", help="Use the DatoCMS API for block schemas and asset uploads")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    generate_parser = subparsers.add_parser("generate", parents=[common], help="Generate or improve field values")
    generate_parser.add_argument("field", nargs="?", help="Field API key")
    generate_parser.add_argument("-i", "--instruction", required=True, help="What to generate")
    generate_parser.add_argument("--improve", action="store_true", help="Improve the current value")
    generate_parser.add_argument("--all", action="store_true", help="Process every eligible field")
    generate_parser.add_argument("--resolution", choices=AVAILABLE_RESOLUTIONS, help="Image resolution for media fields")

    translate_parser = subparsers.add_parser("translate", parents=[common], help="Translate field values")
    translate_parser.add_argument("field", nargs="?", help="Field API key")
    translate_parser.add_argument("--to", help="Target locale (default: every other locale)")
    translate_parser.add_argument("--from", dest="from_locale", help="Fill the current locale from this locale")
    translate_parser.add_argument("--all", action="store_true", help="Translate every localized field")

    alts_parser = subparsers.add_parser("alts", parents=[common], help="Generate alt text for a media field")
    alts_parser.add_argument("field", help="Field API key")

    images_parser = subparsers.add_parser("images", parents=[common], help="Generate image candidates")
    images_parser.add_argument("prompt", help="Image description")
    images_parser.add_argument("--count", type=int, choices=CANDIDATE_COUNTS, default=1, help="Number of candidates")
    images_parser.add_argument(
        "--resolution",
        choices=AVAILABLE_RESOLUTIONS,
        default=config.default_resolution,
        help="Image resolution"
    )
    images_parser.add_argument("--upload", action="store_true", help="Upload the first candidate as an asset")

    subparsers.add_parser("actions", parents=[common], help="List available actions per field")

    return parser


def main():
    """Main entry point."""
    parser = parse_arguments()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging()
    logging.info("DatoGPT - LLM-backed content generation for DatoCMS records")

    commands = {
        "generate": run_generate,
        "translate": run_translate,
        "alts": run_alts,
        "images": run_images,
        "actions": run_actions,
    }

    try:
        commands[args.command](args)

    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        print("\nInterrupted.")

    except (DatoGPTError, ValueError, KeyError) as e:
        logging.error(f"{args.command} failed: {e}")
        print(f"\n{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
