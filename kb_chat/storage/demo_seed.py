"""
Demo Seed Content

A handful of hand-written help articles used to populate an empty store, so
retrieval has something to ground answers in on a fresh environment.
"""

import logging
from typing import List, Dict, Tuple

from ..embeddings.ollama_service import try_embed
from .models import Article, ArticleChunk, make_chunk_id

logger = logging.getLogger(__name__)


DEMO_LAST_MODIFIED = "2024-01-01T00:00:00Z"

DEMO_ARTICLES: List[Dict[str, str]] = [
    {
        'id': 'demo-getting-started',
        'name': 'Getting Started',
        'url': 'https://docs.example.com/article/getting-started',
        'text': (
            "Create an account, then add your first project from the dashboard. "
            "Each project holds its own builds, devices and test results. "
            "Invite teammates from Settings > Members so they can view reports."
        ),
    },
    {
        'id': 'demo-android-testing',
        'name': 'Testing Your Android App',
        'url': 'https://docs.example.com/article/android-testing',
        'text': (
            "Upload a debug APK together with the instrumentation test APK. "
            "Choose the devices to run on and start the run. Espresso and "
            "UI Automator tests are supported. Logs, screenshots and videos are "
            "attached to every test case in the report."
        ),
    },
    {
        'id': 'demo-ios-testing',
        'name': 'Testing Your iOS App',
        'url': 'https://docs.example.com/article/ios-testing',
        'text': (
            "Build your app for testing with xcodebuild build-for-testing and "
            "upload the zipped products folder. XCTest and XCUITest suites run "
            "on real iPhones and iPads; results appear per device."
        ),
    },
    {
        'id': 'demo-ci-integration',
        'name': 'Continuous Integration Setup',
        'url': 'https://docs.example.com/article/ci-integration',
        'text': (
            "Generate an API token under Settings > API and store it as a secret "
            "in your CI provider. Call the runs endpoint after each build to "
            "start tests automatically and fail the pipeline on test failures."
        ),
    },
    {
        'id': 'demo-billing',
        'name': 'Billing and Plans',
        'url': 'https://docs.example.com/article/billing',
        'text': (
            "Plans are billed monthly per parallel device slot. You can upgrade, "
            "downgrade or cancel at any time from Settings > Billing; changes take "
            "effect at the start of the next billing cycle."
        ),
    },
]


class DemoSeeder:
    """
    Builds the fallback corpus.

    Each demo article becomes a single chunk. Embeddings are best effort:
    a chunk whose embedding fails is kept without one.
    """

    def __init__(self, embedder, articles: List[Dict[str, str]] = None):
        self.embedder = embedder
        self.articles = articles if articles is not None else DEMO_ARTICLES

    def build(self) -> Tuple[List[Article], List[ArticleChunk]]:
        """
        Build demo articles and their chunks.

        Returns:
            Tuple of (articles, chunks)
        """
        articles = []
        chunks = []

        for record in self.articles:
            article = Article(
                id=record['id'],
                name=record['name'],
                text=record['text'],
                url=record.get('url', ''),
                last_modified=record.get('lastModified', DEMO_LAST_MODIFIED)
            )

            result = try_embed(self.embedder, article.text)
            if not result.ok:
                logger.warning(f"Seeding demo chunk {article.id} without embedding: {result.error}")

            chunk = ArticleChunk(
                id=make_chunk_id(article.id, 0),
                article_id=article.id,
                article_name=article.name,
                text=article.text,
                url=article.url,
                last_modified=article.last_modified,
                chunk_index=0,
                embedding=result.embedding.tolist() if result.ok else None
            )
            article.chunks = [chunk]
            articles.append(article)
            chunks.append(chunk)

        embedded = sum(1 for chunk in chunks if chunk.has_embedding)
        logger.info(f"Built {len(chunks)} demo chunks ({embedded} with embeddings)")
        return articles, chunks
