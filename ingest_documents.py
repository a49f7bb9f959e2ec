"""
Batch ingestion of plain-text legal documents into DocuIntel.

Indexes every .txt file in a directory (source label = file stem) and
optionally answers a question against the freshly built index. The index is
in-memory, so the query has to run in the same invocation.

Usage:
    python ingest_documents.py --dir ~/contracts/
    python ingest_documents.py --dir ~/contracts/ --query "Who must indemnify whom?"
    python ingest_documents.py --dir ~/contracts/ --query "..." --top-k 3 --min-score 0.5
"""

import sys
import time
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))
load_dotenv()

logger = logging.getLogger(__name__)


def ingest_directory(service, input_dir: Path) -> dict:
    """Ingest every .txt file in input_dir. Returns summary counters."""
    txt_files = sorted(input_dir.glob("*.txt"))
    summary = {"files": len(txt_files), "succeeded": 0, "failed": 0, "chunks": 0, "degraded": 0}

    for i, txt_path in enumerate(txt_files):
        logger.info(f"[{i+1}/{len(txt_files)}] Processing: {txt_path.name}")
        text = txt_path.read_text(encoding="utf-8", errors="replace")
        try:
            result = service.ingest(text, txt_path.stem)
        except Exception as e:
            summary["failed"] += 1
            logger.error(f"  FAILED: {e}")
            continue

        summary["succeeded"] += 1
        summary["chunks"] += result.chunks_indexed
        if result.degraded:
            summary["degraded"] += 1
        logger.info(f"  -> {result.chunks_indexed} chunks")

    return summary


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    arg_parser = argparse.ArgumentParser(description="Ingest plain-text legal documents")
    arg_parser.add_argument(
        "--dir",
        type=str,
        required=True,
        help="Directory containing .txt files",
    )
    arg_parser.add_argument(
        "--query",
        type=str,
        default=None,
        help="Question to answer after ingestion",
    )
    arg_parser.add_argument("--top-k", type=int, default=None, help="Passages to retrieve")
    arg_parser.add_argument("--min-score", type=float, default=None, help="Similarity threshold")
    args = arg_parser.parse_args(argv)

    input_dir = Path(args.dir).expanduser()
    if not input_dir.exists():
        logger.error(f"Directory not found: {input_dir}")
        return 1

    from execution.docuintel.config import Settings
    from execution.docuintel.service import build_service

    settings = Settings.from_env()
    service = build_service(settings)
    logger.info(f"Embedding model: {settings.embedding_model} (provider available: {settings.provider_available})")

    start_time = time.time()
    summary = ingest_directory(service, input_dir)
    elapsed = time.time() - start_time

    if summary["files"] == 0:
        logger.error(f"No TXT files found in {input_dir}")
        return 1

    print("\n" + "=" * 60)
    print("INGESTION COMPLETE")
    print("=" * 60)
    print(f"Files processed: {summary['succeeded']}/{summary['files']} ({summary['failed']} failed)")
    print(f"Total chunks:    {summary['chunks']}")
    print(f"Fallback embeds: {summary['degraded']} files")
    print(f"Time elapsed:    {elapsed:.1f}s")
    print("=" * 60)

    if args.query:
        result = service.query(args.query, top_k=args.top_k, min_score=args.min_score)
        response = result.response
        print(f"\nQ: {args.query}")
        print(f"A: {response.answer}\n")
        for i, citation in enumerate(response.citations, 1):
            print(f"  [{i}] {citation.chunk_id} (score {citation.relevance_score:.3f})")
        print(f"\nConfidence: {response.confidence}  Latency: {result.metrics.query_latency_ms:.0f}ms")

    return 0


if __name__ == "__main__":
    sys.exit(main())
