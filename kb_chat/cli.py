"""
Command-Line Interface for the Knowledge Base Chat System

Provides CLI commands for:
- Article ingestion (Help Scout Docs API or a local JSON file)
- Ranked chunk search
- RAG-based question answering
- Storage statistics and reset
- Ollama health check
"""

import sys
import argparse
import logging
from pathlib import Path

from .embeddings.ollama_service import EmbeddingError
from .main_pipeline import KnowledgeBaseChat


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def cmd_ingest(args):
    """Handle the ingest command."""
    system = KnowledgeBaseChat()

    if args.helpscout:
        print("Ingesting articles from Help Scout Docs")
        result = system.ingest_from_helpscout(
            max_total_articles=args.max_articles,
            show_progress=True
        )

        if not result['success']:
            print(f"✗ Ingestion failed: {result.get('error', 'Unknown error')}")
            sys.exit(1)

        print(f"\n{'='*60}")
        print("Ingestion Summary:")
        print(f"  Collections: {result['collections']}")
        print(f"  Articles processed: {result['docs_processed']}")
        print(f"  Chunks stored: {result['storage_stats']['total_chunks']}")
        print(f"{'='*60}")

        for item in result['preview']:
            print(f"  - {item['name']} ({item['id']}, {item['text_length']} chars)")

        if result['errors']:
            print("\nErrors:")
            for error in result['errors']:
                print(f"  - {error}")

    elif args.file:
        if not Path(args.file).exists():
            print(f"✗ Error: File not found: {args.file}")
            sys.exit(1)

        print(f"Ingesting articles from: {args.file}")
        results = system.ingest_from_file(args.file, show_progress=True)

        print(f"\n{'='*60}")
        print("Ingestion Summary:")
        print(f"  Total articles: {results['total']}")
        print(f"  Successful: {results['successful']}")
        print(f"  Failed: {results['failed']}")
        print(f"  Processing time: {results['processing_time']:.2f}s")
        print(f"{'='*60}")

        if results['failed'] > 0:
            print("\nFailed articles:")
            for detail in results['details']:
                if not detail['success']:
                    print(f"  - {detail['article_id']}: {detail.get('error', 'Unknown error')}")

    else:
        print("✗ Error: Either --helpscout or --file must be specified")
        sys.exit(1)


def cmd_search(args):
    """Handle the search command."""
    system = KnowledgeBaseChat()

    print(f"Searching for: {args.query}")
    print()

    results = system.search(args.query, top_k=args.top_k)

    if not results:
        print("No results found.")
        return

    print(f"Found {len(results)} results ({results[0]['mode']} ranking):\n")

    for i, result in enumerate(results, 1):
        print(f"[{i}] {result['title']}")
        print(f"    URL: {result['url']}")
        if result['score'] is not None:
            print(f"    Score: {result['score']:.3f}")
        print(f"    Chunk: {result['chunk'][:200]}...")
        print()


def cmd_ask(args):
    """Handle the ask command."""
    system = KnowledgeBaseChat()

    print(f"Question: {args.question}")
    print()

    result = system.ask_question(args.question, top_k=args.top_k)

    print("Answer:")
    print(f"{result['answer']}")
    print()

    if not args.no_sources and result.get('sources'):
        print("Sources:")
        for i, source in enumerate(result['sources'], 1):
            print(f"  [{i}] {source['name']}")
            print(f"      {source['url']}")
        print()

    print(f"Response time: {result['response_time']:.2f}s")


def cmd_stats(args):
    """Handle the stats command."""
    system = KnowledgeBaseChat()

    stats = system.get_stats()

    print("="*60)
    print("Storage Statistics")
    print("="*60)
    print(f"Total Articles: {stats['total_articles']}")
    print(f"Total Chunks: {stats['total_chunks']}")
    print(f"Chunks With Embeddings: {stats['chunks_with_embeddings']}")
    print()
    print(f"Embedding Model: {stats['embedding_model']}")
    print(f"Embedding Dimensions: {stats['embedding_dimensions'] or 'N/A'}")
    print(f"Persistence: {stats['persistence']}")
    print(f"Chunker: {stats['chunker']}")
    print("="*60)


def cmd_clear(args):
    """Handle the clear command."""
    system = KnowledgeBaseChat()
    snapshot_cleared = system.clear(persist=not args.keep_snapshot)
    print("✓ Cleared all articles and chunks from memory")
    if snapshot_cleared:
        print("✓ Emptied the persisted chunk snapshot")


def cmd_health(args):
    """Handle the health command."""
    system = KnowledgeBaseChat()

    try:
        system.embedding_service.verify_connection()
        system.embedding_service.verify_model_available()
    except EmbeddingError as e:
        print(f"✗ {e}")
        sys.exit(1)

    print(f"✓ Ollama is reachable and model '{system.config.ollama_model}' is available")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description='Knowledge Base Chat - Documentation retrieval and question answering',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest articles from Help Scout Docs
  python -m kb_chat.cli ingest --helpscout

  # Ingest articles from a JSON file
  python -m kb_chat.cli ingest --file examples/sample_articles.json

  # Search the stored chunks
  python -m kb_chat.cli search "android testing"

  # Ask a question
  python -m kb_chat.cli ask "How do I run Espresso tests?"

  # View statistics
  python -m kb_chat.cli stats
        """
    )

    # Global arguments
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Ingest command
    ingest_parser = subparsers.add_parser(
        'ingest',
        help='Ingest documentation articles'
    )
    source_group = ingest_parser.add_mutually_exclusive_group()
    source_group.add_argument(
        '--helpscout',
        action='store_true',
        help='Fetch articles from the Help Scout Docs API'
    )
    source_group.add_argument(
        '--file',
        help='JSON file containing a list of articles'
    )
    ingest_parser.add_argument(
        '--max-articles',
        type=int,
        default=None,
        help='Maximum articles to ingest from Help Scout (default: from config)'
    )
    ingest_parser.set_defaults(func=cmd_ingest)

    # Search command
    search_parser = subparsers.add_parser(
        'search',
        help='Search for relevant chunks'
    )
    search_parser.add_argument(
        'query',
        help='Search query'
    )
    search_parser.add_argument(
        '--top-k',
        type=int,
        default=None,
        help='Number of results to return (default: TOP_K_DEFAULT from config)'
    )
    search_parser.set_defaults(func=cmd_search)

    # Ask command
    ask_parser = subparsers.add_parser(
        'ask',
        help='Ask a question and get an AI-generated answer'
    )
    ask_parser.add_argument(
        'question',
        help='Question to ask'
    )
    ask_parser.add_argument(
        '--top-k',
        type=int,
        default=None,
        help='Number of context chunks to retrieve (default: TOP_K_DEFAULT from config)'
    )
    ask_parser.add_argument(
        '--no-sources',
        action='store_true',
        help='Disable source listing'
    )
    ask_parser.set_defaults(func=cmd_ask)

    # Stats command
    stats_parser = subparsers.add_parser(
        'stats',
        help='Display storage statistics'
    )
    stats_parser.set_defaults(func=cmd_stats)

    # Clear command
    clear_parser = subparsers.add_parser(
        'clear',
        help='Clear all articles and chunks, including the persisted snapshot'
    )
    clear_parser.add_argument(
        '--keep-snapshot',
        action='store_true',
        help='Only clear memory; the next search reloads the persisted snapshot'
    )
    clear_parser.set_defaults(func=cmd_clear)

    # Health command
    health_parser = subparsers.add_parser(
        'health',
        help='Check the Ollama connection and embedding model'
    )
    health_parser.set_defaults(func=cmd_health)

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        print(f"\n✗ Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
