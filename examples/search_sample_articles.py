"""
Ingest the sample articles and run a few searches.

Uses the embedding model configured in .env; when Ollama is not running every
chunk embedding fails and the store answers with demo content instead.
"""

from pathlib import Path

from kb_chat.config import get_config
from kb_chat.main_pipeline import KnowledgeBaseChat


def main():
    """Ingest sample_articles.json and print ranked results."""
    print("=" * 80)
    print("Knowledge Base Chat - Sample Search")
    print("=" * 80)
    print()

    config = get_config()
    config.update(persistence_backend='none')
    system = KnowledgeBaseChat(config=config)

    sample_file = Path(__file__).parent / 'sample_articles.json'
    summary = system.ingest_from_file(str(sample_file), show_progress=False)
    print(f"Ingested {summary['successful']}/{summary['total']} articles")
    print(f"Stats: {system.store.get_storage_stats()}")
    print()

    for query in ["android testing", "code signing", "fail the pipeline"]:
        print(f"Query: {query}")
        print("-" * 80)
        for i, result in enumerate(system.search(query, top_k=3), 1):
            print(f"  [{i}] {result['title']} ({result['mode']})")
            print(f"      {result['chunk'][:100]}...")
        print()


if __name__ == '__main__':
    main()
