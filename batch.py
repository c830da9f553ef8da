"""Batch driver: parse a directory of 855 files and hand the records downstream.

Each file is one unit of work in a thread pool. A file that fails to read or
parse is logged and reported in its DocumentResult; the rest of the batch
carries on.
"""

import argparse
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from config import configure_logging, load_settings
from drug_records import build_ordered_drugs
from edi_parser import X12ParseError
from enrichment import SqliteDrugCatalog, merge_drug_info
from history import OrderingHistoryRecorder
from parser_855 import parse_transaction

logger = logging.getLogger(__name__)

INPUT_SUFFIX = ".txt"
# Console capture files written into the task directory by the job runner
IGNORED_FILES = {"stdout.txt", "stderr.txt"}


@dataclass
class DocumentResult:
    source: str
    job_id: Optional[str] = None
    records: List[object] = field(default_factory=list)
    history_rows: int = 0
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None


def list_input_files(directory):
    """Return the .txt documents in ``directory`` sorted by name."""
    return sorted(
        p for p in Path(directory).iterdir()
        if p.is_file()
        and p.name.lower().endswith(INPUT_SUFFIX)
        and p.name.lower() not in IGNORED_FILES
    )


def read_document(path):
    raw = Path(path).read_bytes()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        content = raw.decode("latin-1")
    return content.lstrip("\ufeff").strip()


def process_document(source, content, job_id=None, catalog=None, recorder=None):
    """Parse one document, then enrich and record it when collaborators are given."""
    result = DocumentResult(source=source, job_id=job_id)
    try:
        records = build_ordered_drugs(parse_transaction(content))
        if catalog is not None and records:
            records = merge_drug_info(records, catalog)
        if recorder is not None and records:
            result.history_rows = recorder.record(records, batch_job_id=job_id)
        result.records = records
    except X12ParseError as e:
        logger.error("%s - error parsing %s, skipping this file: %s", job_id, source, e)
        result.error = str(e)
    except Exception as e:
        logger.exception("%s - error processing %s, skipping this file", job_id, source)
        result.error = f"{type(e).__name__}: {e}"
    return result


def _process_path(path, job_id, catalog, recorder):
    try:
        content = read_document(path)
    except OSError as e:
        logger.error("%s - could not read %s: %s", job_id, path.name, e)
        return DocumentResult(source=path.name, job_id=job_id, error=str(e))
    return process_document(path.name, content, job_id, catalog, recorder)


def process_directory(directory, job_id=None, catalog=None, recorder=None, max_workers=None):
    """Process every input file in ``directory``; results follow file order."""
    paths = list_input_files(directory)
    if not paths:
        logger.info("%s - found no files to parse in %s", job_id, directory)
        return []

    logger.info("%s - found %d file(s) to process", job_id, len(paths))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(
            lambda p: _process_path(p, job_id, catalog, recorder), paths
        ))

    failed = sum(1 for r in results if not r.ok)
    logger.info(
        "%s - parsed %d file(s), %d failed, %d record(s), %d history row(s)",
        job_id, len(results) - failed, failed,
        sum(len(r.records) for r in results),
        sum(r.history_rows for r in results),
    )
    return results


def main(argv=None):
    """Command-line entry: ``edi855-batch [DIRECTORY]`` (defaults to the cwd)."""
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Parse EDI 855 files and record opioid ordering history.")
    parser.add_argument("directory", nargs="?", default=".")
    parser.add_argument("--db", default=settings.db_path, help="SQLite database with drug/account tables")
    parser.add_argument("--job-id", default=settings.job_id)
    parser.add_argument("--workers", type=int, default=settings.max_workers)
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)

    catalog = recorder = None
    if args.db:
        catalog = SqliteDrugCatalog(args.db)
        recorder = OrderingHistoryRecorder(args.db)

    results = process_directory(
        args.directory, job_id=args.job_id, catalog=catalog,
        recorder=recorder, max_workers=args.workers,
    )
    return 1 if any(not r.ok for r in results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
