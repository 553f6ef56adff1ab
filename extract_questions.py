#!/usr/bin/env python3
"""
Extract multiple choice questions and their diagrams from a scanned PDF.

Usage:
    python extract_questions.py paper.pdf
    python extract_questions.py paper.pdf --pages 2-10 --format json --format pdf
"""

import argparse
import asyncio
import sys
from pathlib import Path

from tqdm import tqdm

from config import (
    DEFAULT_MODEL,
    EXPORT_FORMATS,
    MAX_CONCURRENT_REQUESTS,
    OUTPUT_DIR,
    PAGE_CONCURRENCY,
    configure_logging,
)
from pipeline.exporter import export_result
from pipeline.models import ProcessStep, ProgressEvent
from pipeline.orchestrator import DocumentExtractor, get_memory
from pipeline.pdf_loader import parse_page_range
from utils.settings import get_api_key


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract MCQs and diagrams from a PDF with Gemini")
    parser.add_argument("pdf", type=str, help="PDF file to process")
    parser.add_argument("--pages", type=str, help="Page range (e.g., 2-10)")
    parser.add_argument("--output-dir", type=str, default=str(OUTPUT_DIR), help="Where to write reports")
    parser.add_argument(
        "--format", dest="formats", action="append", choices=EXPORT_FORMATS,
        help="Report format (repeatable, default: json)",
    )
    parser.add_argument("--max-concurrent", type=int, default=MAX_CONCURRENT_REQUESTS,
                        help="Max in-flight Gemini requests")
    parser.add_argument("--page-concurrency", type=int, default=PAGE_CONCURRENCY,
                        help="Max pages processed at once")
    parser.add_argument("--model", type=str, default=DEFAULT_MODEL, help="Gemini model name")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


class ProgressBar:
    """Drives a tqdm bar from ProgressEvents."""

    def __init__(self):
        self.bar = tqdm(total=100, desc="Starting", unit="%", bar_format="{l_bar}{bar}| {n:.0f}/{total}%")

    def __call__(self, event: ProgressEvent) -> None:
        self.bar.set_description(event.step.value.replace("_", " ").title())
        self.bar.update(event.progress - self.bar.n)
        if event.message:
            self.bar.set_postfix_str(event.message)

    def close(self) -> None:
        self.bar.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "WARNING")

    # Check API key
    api_key = get_api_key()
    if not api_key:
        print("[ERROR] GEMINI_API_KEY not set!")
        print("Get a free key at: https://aistudio.google.com/app/apikey")
        print("Then: export GEMINI_API_KEY='your-key'")
        return 1

    pdf_path = Path(args.pdf)
    if not pdf_path.exists():
        print(f"[ERROR] Not found: {pdf_path}")
        return 1

    # Parse page range
    page_range = None
    if args.pages:
        try:
            page_range = parse_page_range(args.pages)
        except ValueError as e:
            print(f"[ERROR] {e}")
            return 1

    print("=" * 60)
    print("MCQ DIAGRAM EXTRACTION")
    print("=" * 60)
    print(f"\n[INIT] Memory: {get_memory()}")
    print(f"[INFO] Processing: {pdf_path.name}")

    progress = ProgressBar()
    try:
        extractor = DocumentExtractor(
            api_key=api_key,
            model=args.model,
            max_concurrent=args.max_concurrent,
            page_concurrency=args.page_concurrency,
            on_progress=progress,
        )
        result = asyncio.run(extractor.process(pdf_path.read_bytes(), pdf_path.name, page_range))
    finally:
        progress.close()

    if result.step == ProcessStep.ERROR:
        print(f"\n[ERROR] {result.error}")
        return 1

    # Summary
    print(f"\n{'=' * 60}")
    print("SUMMARY")
    print("=" * 60)
    print(f"Pages processed: {result.total_pages}")
    print(f"Questions extracted: {result.total_questions}")
    print(f"Questions with diagrams: {result.questions_with_diagrams}")

    paths = export_result(result, Path(args.output_dir), args.formats or ["json"])
    for path in paths:
        print(f"[SAVED] {path}")

    print(f"\n[DONE] Memory: {get_memory()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
