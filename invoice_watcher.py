#!/usr/bin/env python3
"""
Invoice Folder Watcher - drop zone for the ingest API

Watches a folder for new PDF/CSV invoices, uploads them through the same
upload form the web client uses and prints the extracted fields.

Usage:
    python invoice_watcher.py --watch-folder ./invoices-incoming
    python invoice_watcher.py --watch-folder ./invoices-incoming --once
"""

import argparse
import json
import time
from datetime import datetime
from pathlib import Path

import httpx
from loguru import logger
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from src.client import ExpectedFieldEditor, FieldEditorError, SelectedFile, UploadForm
from src.client.results_table import render_text
from src.core.logging import setup_logging

API_BASE_URL = "http://127.0.0.1:8000"
INVOICE_SUFFIXES = {".pdf", ".csv"}


class InvoiceHandler(FileSystemEventHandler):
    """Uploads each new invoice file in the watched folder"""

    def __init__(self, watch_folder, processed_folder, failed_folder, field_editor, client):
        self.watch_folder = Path(watch_folder)
        self.processed_folder = Path(processed_folder)
        self.failed_folder = Path(failed_folder)
        self.field_editor = field_editor
        self.client = client
        self.processed_files = set()

        # Create folders if they don't exist
        self.processed_folder.mkdir(exist_ok=True)
        self.failed_folder.mkdir(exist_ok=True)

    def on_created(self, event):
        if event.is_directory:
            return

        file_path = Path(event.src_path)
        if file_path.suffix.lower() not in INVOICE_SUFFIXES:
            return

        # Avoid processing the same file multiple times
        if file_path in self.processed_files:
            return

        # Small delay to ensure file is fully written
        time.sleep(1)

        # Check if file still exists (might have been moved)
        if not file_path.exists():
            return

        self.processed_files.add(file_path)
        self.process_batch([file_path])

    def process_batch(self, paths: list[Path]):
        """Upload a batch of files in a single ingest request"""
        form = UploadForm(field_editor=self.field_editor)
        form.add_files([SelectedFile.from_path(p) for p in paths])
        if form.error:
            logger.warning(form.error)
        if not form.can_submit:
            return

        logger.info("Uploading invoices", files=[f.name for f in form.files])
        results = form.submit(self.client)

        if results is None:
            logger.error(f"Upload failed: {form.upload_error}")
            for path in paths:
                self.move(path, self.failed_folder)
            return

        print(render_text(results))
        by_name = {r.get("file_name"): r for r in results}
        for path in paths:
            result = by_name.get(path.name, {})
            destination = self.failed_folder if result.get("error") else self.processed_folder
            self.move(path, destination)
            self.log_processing(path.name, result)

    def move(self, path: Path, destination: Path):
        if path.exists():
            dest_path = destination / path.name
            path.rename(dest_path)
            logger.info("Moved file", source=str(path), destination=str(dest_path))

    def log_processing(self, filename: str, result: dict):
        """Append the result to processing_log.json next to the watch folder"""
        log_file = self.watch_folder.parent / "processing_log.json"

        if log_file.exists():
            with open(log_file, 'r') as f:
                log_data = json.load(f)
        else:
            log_data = []

        log_data.append({
            "timestamp": datetime.now().isoformat(),
            "filename": filename,
            "result": result,
        })

        with open(log_file, 'w') as f:
            json.dump(log_data, f, indent=2)


def build_field_editor(extra_fields: list[str]) -> ExpectedFieldEditor:
    """Default fields plus any `Label=Description` pairs from the command line"""
    editor = ExpectedFieldEditor()
    for raw in extra_fields:
        label, _, desc = raw.partition("=")
        try:
            editor.add_field(label, desc)
        except FieldEditorError as e:
            raise SystemExit(f"Invalid --field '{raw}': {e}")
    return editor


def main():
    parser = argparse.ArgumentParser(
        description='Watch a folder for invoices and extract their fields automatically'
    )
    parser.add_argument(
        '--watch-folder',
        default='./invoices-incoming',
        help='Folder to watch for new invoices (default: ./invoices-incoming)'
    )
    parser.add_argument(
        '--processed-folder',
        default='./invoices-processed',
        help='Folder for parsed invoices (default: ./invoices-processed)'
    )
    parser.add_argument(
        '--failed-folder',
        default='./invoices-failed',
        help='Folder for invoices that could not be parsed (default: ./invoices-failed)'
    )
    parser.add_argument(
        '--field',
        action='append',
        default=[],
        metavar='LABEL=DESCRIPTION',
        help='Extra field to extract, may be repeated (e.g. "PO Number=Purchase order reference")'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Upload the invoices already in the watch folder and exit'
    )
    parser.add_argument(
        '--api-url',
        default=API_BASE_URL,
        help=f'API base URL (default: {API_BASE_URL})'
    )

    args = parser.parse_args()
    setup_logging()

    watch_folder = Path(args.watch_folder)
    watch_folder.mkdir(exist_ok=True)

    client = httpx.Client(base_url=args.api_url, timeout=120)
    event_handler = InvoiceHandler(
        args.watch_folder,
        args.processed_folder,
        args.failed_folder,
        build_field_editor(args.field),
        client,
    )

    if args.once:
        existing = sorted(p for p in watch_folder.iterdir() if p.suffix.lower() in INVOICE_SUFFIXES)
        max_files = UploadForm().max_files
        for start in range(0, len(existing), max_files):
            event_handler.process_batch(existing[start:start + max_files])
        client.close()
        return

    observer = Observer()
    observer.schedule(event_handler, str(watch_folder), recursive=False)
    observer.start()

    logger.info(
        "Watching for invoices - drop PDF or CSV files into the folder, Ctrl+C to stop",
        watch_folder=str(watch_folder.absolute()),
        api=args.api_url,
        fields=event_handler.field_editor.keys,
    )

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Stopping watcher...")
        observer.stop()

    observer.join()
    client.close()
    logger.info("Watcher stopped")


if __name__ == "__main__":
    main()
