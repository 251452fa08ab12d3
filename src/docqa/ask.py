"""
ask.py — Question in, grounded answer out
==========================================

Usage:
  docqa-ask handbook.pdf "How many vacation days do new hires get?"

  # Switch completion models with --model
  docqa-ask handbook.pdf "query" --model claude
  docqa-ask handbook.pdf "query" --model llama3

  # Retrieval knobs
  docqa-ask handbook.pdf "query" --top-k 5 --chunk-preset compact

  # Interactive mode (keep asking without re-indexing)
  docqa-ask handbook.pdf

  # Settings file (see docqa.config) and debug logging
  docqa-ask handbook.pdf --config docqa.yaml --verbose

  # List available presets
  docqa-ask --list-models
"""

import logging
import sys
from pathlib import Path

from docqa.config import DocQAConfig, load_config
from docqa.errors import DocQAError
from docqa.generator import AnswerSynthesizer, create_backend_from_preset, list_presets, print_answer
from docqa.pipeline import DocumentSession

USAGE = """Usage:
  docqa-ask <document> [question] [--model PRESET] [--top-k N]
            [--chunk-preset default|compact|large] [--config FILE] [--verbose]
  docqa-ask --list-models"""


def parse_args(argv: list[str]) -> dict:
    """
    Simple arg parser.

    Parses:
      docqa-ask <document> [question] [--model preset] [--top-k N]
                [--chunk-preset name] [--config file] [--verbose] [--list-models]
    """
    args = {
        "filepath": None,
        "query": None,
        "model": None,
        "top_k": None,
        "chunk_preset": None,
        "config": None,
        "verbose": False,
        "list_models": False,
    }
    valued = {"--model": "model", "--top-k": "top_k", "--chunk-preset": "chunk_preset", "--config": "config"}

    positional = []
    i = 0
    while i < len(argv):
        if argv[i] in valued and i + 1 < len(argv):
            args[valued[argv[i]]] = argv[i + 1]
            i += 2
        elif argv[i] in ("--verbose", "-v"):
            args["verbose"] = True
            i += 1
        elif argv[i] == "--list-models":
            args["list_models"] = True
            i += 1
        elif argv[i].startswith("--"):
            raise ValueError(f"Unknown option: {argv[i]}")
        else:
            positional.append(argv[i])
            i += 1

    if len(positional) >= 1:
        args["filepath"] = positional[0]
    if len(positional) >= 2:
        args["query"] = " ".join(positional[1:])

    return args


def build_session(args: dict) -> tuple[DocumentSession, DocQAConfig]:
    """Load config, apply command-line overrides, build an empty session."""
    config = load_config(args["config"])

    overrides = {}
    if args["model"]:
        overrides["llm_preset"] = args["model"]
    if args["chunk_preset"]:
        overrides["chunk_preset"] = args["chunk_preset"]
    if args["top_k"]:
        try:
            overrides["top_k"] = int(args["top_k"])
        except ValueError:
            raise ValueError(f"--top-k must be an integer, got {args['top_k']!r}") from None
    if args["verbose"]:
        overrides["log_level"] = "DEBUG"
    if overrides:
        config = config.replace(**overrides)

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return DocumentSession.from_config(config), config


def ask(query: str, session: DocumentSession):
    """Run the full pipeline for a single question."""
    print(f"\n{'─'*70}")
    print(f"  Retrieving...")
    results = session.retrieve(query)

    print(f"  Top {len(results)} chunks:")
    for r in results:
        print(f"    #{r.rank} score={r.score:.4f} chunk={r.indexed_chunk.chunk_id}")

    print(f"\n  Generating answer...")
    response = session.synthesizer.synthesize(query.strip(), results)
    print_answer(response)
    return response


def print_stats(session: DocumentSession):
    stats = session.stats()
    chunks = stats["chunks"]
    print(f"  Source: {stats['source']}")
    print(f"  Chunker: {stats['chunker']}")
    print(f"  Embedding: {stats['embedding']} ({stats['store']['dim']} dims)")
    print(f"  Chunks: {chunks['count']}", end="")
    if chunks["count"]:
        print(f" | avg {chunks['avg_words']} words | {chunks['total_words']:,} words total")
    else:
        print()


def interactive(session: DocumentSession, model_preset: str):
    print(f"\n{'='*70}")
    print(f"  Ready! Ask questions about the document. (model: {model_preset})")
    print(f"  Type 'quit' to stop, 'switch <preset>' to change model, 'stats' for the index.")
    print(f"{'='*70}")

    while True:
        try:
            user_input = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ("quit", "exit", "q"):
            print("Bye!")
            break

        # Allow switching models mid-session
        if user_input.lower().startswith("switch "):
            new_preset = user_input.split(None, 1)[1].strip()
            try:
                session.synthesizer = AnswerSynthesizer(create_backend_from_preset(new_preset))
                print(f"  Switched to {new_preset}")
            except DocQAError as e:
                print(f"  Error: {e}")
            continue

        if user_input.lower() == "models":
            print(list_presets())
            continue
        if user_input.lower() == "stats":
            print_stats(session)
            continue

        try:
            ask(user_input, session)
        except DocQAError as e:
            print(f"  Error: {e}")


def main():
    """Entry point for `docqa-ask`"""
    try:
        args = parse_args(sys.argv[1:])
    except ValueError as e:
        print(f"Error: {e}\n{USAGE}")
        sys.exit(2)

    if args["list_models"]:
        print(list_presets())
        print('\nUsage: docqa-ask document.pdf "query" --model <preset>')
        sys.exit(0)

    if not args["filepath"]:
        print(USAGE)
        sys.exit(1)

    filepath = Path(args["filepath"])

    try:
        session, config = build_session(args)

        print(f"\n{'='*70}")
        print(f"  DOCUMENT Q&A")
        print(f"  Document: {filepath.name}")
        print(f"  Model: {config.llm_preset} | top-k: {config.top_k}")
        print(f"{'='*70}")

        print("\n  Indexing document...")
        entries = session.load_file(filepath)
        print(f"  {len(entries)} chunks indexed")

        if args["query"]:
            ask(args["query"], session)
            return

        interactive(session, config.llm_preset)
    except (DocQAError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
