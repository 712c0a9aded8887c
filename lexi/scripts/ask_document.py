"""
Lexi - Ask a Document (CLI)
============================
CLI entry point that runs the retrieval core end-to-end on one local
PDF, without touching MongoDB:
    1. Load settings (fail-fast on configuration errors).
    2. Extract → chunk → embed → index the PDF in-process.
    3. Answer each question and print the answer with its sources.
    4. Print a timing summary.

Flags:
    --top-k N          Evidence chunks per question (default: RETRIEVAL_TOP_K).
    --chunk-size N     Override CHUNK_SIZE.
    --chunk-overlap N  Override CHUNK_OVERLAP.
    --chunks-only      Print the chunks and exit (no model calls).

Usage:
    python -m lexi.scripts.ask_document lease.pdf "Who pays for repairs?"
    python -m lexi.scripts.ask_document lease.pdf --chunks-only
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ask_document", description="Lexi: Index a PDF in memory and answer questions about it.")
    parser.add_argument("pdf", type=Path, help="Path to the PDF to index.")
    parser.add_argument("questions", nargs="*", help="Questions to ask about the document.")
    parser.add_argument("--top-k", type=int, default=None, help="Evidence chunks per question.")
    parser.add_argument("--chunk-size", type=int, default=None, help="Override CHUNK_SIZE.")
    parser.add_argument("--chunk-overlap", type=int, default=None, help="Override CHUNK_OVERLAP.")
    parser.add_argument("--chunks-only", action="store_true", default=False, help="Print the chunks and exit without calling any model.")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

async def _run(args: argparse.Namespace) -> int:
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from lexi.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error; check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from lexi.src.core.chunker import chunk_text
    from lexi.src.core.embeddings import EmbeddingGateway
    from lexi.src.core.exceptions import LexiError
    from lexi.src.core.rag_engine import AnswerSynthesizer
    from lexi.src.core.retriever import Retriever
    from lexi.src.database.vector_store import VectorIndex
    from lexi.src.utils.logger import get_logger
    from lexi.src.utils.pdf_extractor import extract_text

    logger = get_logger(__name__)
    logger.info("Settings loaded in %.1fms", settings_ms)

    chunk_size = args.chunk_size or settings.CHUNK_SIZE
    chunk_overlap = settings.CHUNK_OVERLAP if args.chunk_overlap is None else args.chunk_overlap
    _print_header(settings, args.pdf, chunk_size, chunk_overlap)

    if not args.pdf.is_file():
        logger.error("File not found: %s", args.pdf)
        return 1

    # ── 1. Extract + chunk (timed) ─────────────────────────────────────
    t_ingest = time.perf_counter()
    try:
        chunks = chunk_text(extract_text(args.pdf.read_bytes()), chunk_size, chunk_overlap)
    except (LexiError, ValueError) as exc:
        logger.error("Could not prepare '%s': %s", args.pdf.name, exc)
        return 1

    if args.chunks_only:
        for i, chunk in enumerate(chunks):
            print(f"--- Chunk {i} ({len(chunk)} chars) ---")
            print(chunk)
            print()
        return 0

    # ── 2. Embed + index ───────────────────────────────────────────────
    index = VectorIndex()
    gateway = EmbeddingGateway()
    try:
        index.put(args.pdf.name, chunks, await gateway.embed(chunks))
    except LexiError as exc:
        logger.error("Indexing failed: %s", exc)
        return 1
    ingest_ms = (time.perf_counter() - t_ingest) * 1000

    # ── 3. Answer questions ────────────────────────────────────────────
    synthesizer = AnswerSynthesizer(Retriever(index, gateway), top_k=args.top_k)
    t_answer = time.perf_counter()
    for question in args.questions:
        print(f"Q: {question}")
        print("=" * 60)
        try:
            result = await synthesizer.answer(question, args.pdf.name)
        except LexiError as exc:
            logger.error("Question failed: %s", exc)
            return 1
        print(result.response)
        for i, source in enumerate(result.sources, 1):
            print(f"\n  [{i}] similarity={source.similarity:.4f}")
            print(f"      {source.excerpt}")
        print()
    answer_ms = (time.perf_counter() - t_answer) * 1000

    _print_footer(len(chunks), len(args.questions), settings_ms, ingest_ms, answer_ms, time.perf_counter() - t_start)
    return 0


def main(argv: list[str] | None = None) -> None:
    sys.exit(asyncio.run(_run(_parse_args(argv))))


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, pdf: Path, chunk_size: int, chunk_overlap: int) -> None:
    api_key = settings.GOOGLE_API_KEY  # type: ignore[attr-defined]
    api_key_val = api_key.get_secret_value() if api_key is not None else ""
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else ("****" if api_key_val else "(not set)")

    print()
    print("=" * 60)
    print("  LEXI: Ask a Document")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                   # type: ignore[attr-defined]
    print(f"  Document     : {pdf}")
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")       # type: ignore[attr-defined]
    print(f"  LLM          : {settings.LLM_MODEL}")             # type: ignore[attr-defined]
    print(f"  Chunking     : {chunk_size} chars / {chunk_overlap} overlap")
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(total_chunks: int, total_questions: int, settings_ms: float, ingest_ms: float, answer_ms: float, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Chunks indexed       : {total_chunks}")
    print(f"  Questions answered   : {total_questions}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Extract/chunk/embed  : {ingest_ms:>8.1f}ms")
    print(f"  Answering            : {answer_ms:>8.1f}ms")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
