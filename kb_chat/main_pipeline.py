"""
Main Pipeline System

Wires the components into one object for article ingestion, retrieval and
question answering:
- Document source (Help Scout Docs API or a local JSON file)
- Chunking and embedding
- Article store with snapshot persistence
- RAG answer generation
"""

import json
import time
import logging
from typing import List, Dict, Optional, Any, Union

from tqdm import tqdm

from .config import Config, get_config
from .embeddings.ollama_service import OllamaEmbeddingService
from .ingestion.chunker import TextChunker
from .ingestion.helpscout_client import HelpScoutDocsClient, HelpScoutError
from .query.rag_service import RAGService
from .storage.article_store import ArticleStore
from .storage.models import Article
from .storage.persistence import create_persistence


class KnowledgeBaseChat:
    """
    Main pipeline system that integrates all components.

    Provides high-level methods for:
    - Article ingestion (single, Help Scout, JSON file)
    - Ranked chunk search and RAG-based Q&A
    - Storage statistics and reset
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        embedding_service: Optional[OllamaEmbeddingService] = None,
        store: Optional[ArticleStore] = None,
        rag_service: Optional[RAGService] = None,
        docs_client: Optional[HelpScoutDocsClient] = None,
        log_level: int = logging.INFO
    ):
        """
        Initialize the system.

        Args:
            config: Config instance (default: global config)
            embedding_service: Embedder (default: OllamaEmbeddingService from config)
            store: ArticleStore (default: built from config)
            rag_service: RAGService (default: built from config)
            docs_client: HelpScoutDocsClient (default: built lazily from config)
            log_level: Logging level
        """
        self._setup_logging(log_level)

        self.config = config or get_config()

        # Initialize components (dependency injection or defaults)
        self.embedding_service = embedding_service or OllamaEmbeddingService(
            model=self.config.ollama_model,
            base_url=self.config.ollama_base_url,
            timeout=self.config.ollama_timeout,
            expected_dimensions=self.config.embedding_dimensions
        )
        # An empty store is falsy, so test against None
        if store is None:
            store = ArticleStore(
                embedder=self.embedding_service,
                chunker=TextChunker(
                    max_tokens=self.config.chunk_max_tokens,
                    overlap_tokens=self.config.chunk_overlap_tokens
                ),
                persistence=create_persistence(self.config)
            )
        self.store = store
        self.rag_service = rag_service or RAGService(
            store=self.store,
            llm_model=self.config.llm_model,
            top_k=self.config.top_k_default,
            temperature=self.config.llm_temperature,
            max_tokens=self.config.llm_max_tokens,
            ollama_base_url=self.config.ollama_base_url
        )
        self._docs_client = docs_client

        loaded = self.store.load_snapshot()
        if loaded:
            self.logger.info(f"Restored {loaded} chunks from snapshot")

        self.logger.info("KnowledgeBaseChat initialized successfully")

    def _setup_logging(self, log_level: int):
        """Configure logging for the system."""
        self.logger = logging.getLogger(__name__)
        self.logger.setLevel(log_level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    @property
    def docs_client(self) -> HelpScoutDocsClient:
        """
        Help Scout client, created on first use.

        Raises:
            HelpScoutError: If no API key is configured
        """
        if self._docs_client is None:
            self._docs_client = HelpScoutDocsClient(
                api_key=self.config.helpscout_api_key,
                base_url=self.config.helpscout_base_url,
                timeout=self.config.helpscout_timeout,
                max_retries=self.config.helpscout_max_retries
            )
        return self._docs_client

    def ingest_article(self, article: Union[Article, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Ingest a single article: chunk → embed → store.

        Args:
            article: Article or source record dictionary

        Returns:
            Dictionary with ingestion results:
                - success: bool
                - article_id: str
                - chunks_created: int
                - processing_time: float
                - error: str (if failed)
        """
        start_time = time.time()

        try:
            if not isinstance(article, Article):
                article = Article.from_dict(article)

            chunks = self.store.store_article(article)
            processing_time = time.time() - start_time

            self.logger.info(
                f"Processed article {article.name} ({article.id}): "
                f"{len(chunks)} chunks in {processing_time:.2f}s"
            )
            return {
                'success': True,
                'article_id': article.id,
                'name': article.name,
                'chunks_created': len(chunks),
                'processing_time': processing_time
            }

        except (ValueError, KeyError) as e:
            article_id = getattr(article, 'id', None)
            if article_id is None and isinstance(article, dict):
                article_id = article.get('id')
            self.logger.error(f"Error storing article {article_id}: {e}")
            return {
                'success': False,
                'article_id': article_id,
                'error': str(e),
                'processing_time': time.time() - start_time
            }

    def ingest_from_helpscout(
        self,
        max_total_articles: Optional[int] = None,
        max_articles_per_collection: Optional[int] = None,
        show_progress: bool = True
    ) -> Dict[str, Any]:
        """
        Ingest articles from the Help Scout Docs API.

        Args:
            max_total_articles: Stop after this many stored articles
            max_articles_per_collection: Articles taken from each collection
            show_progress: Show progress bar over collections

        Returns:
            Dictionary with:
                - success: bool
                - docs_processed: int
                - collections: int
                - storage_stats: dict
                - preview: first three processed articles
                - errors: first five error messages
        """
        max_total = max_total_articles or self.config.max_total_articles
        per_collection = max_articles_per_collection or self.config.max_articles_per_collection

        try:
            collections = self.docs_client.list_collections()
        except HelpScoutError as e:
            self.logger.error(f"Error in Help Scout ingestion: {e}")
            return {'success': False, 'error': str(e)}

        processed: List[Article] = []
        errors: List[str] = []

        iterator = tqdm(collections, desc="Ingesting collections") if show_progress else collections

        for collection in iterator:
            if len(processed) >= max_total:
                self.logger.info(f"Reached maximum articles limit ({max_total}), stopping processing")
                break

            collection_id = collection.get('id')
            self.logger.info(f"Processing collection: {collection.get('name')} ({collection_id})")

            try:
                references = self.docs_client.list_articles(collection_id)
            except HelpScoutError as e:
                errors.append(f"Error processing collection {collection_id}: {e}")
                self.logger.error(errors[-1])
                continue

            for reference in references[:per_collection]:
                if len(processed) >= max_total:
                    break

                article_id = reference.get('id')
                try:
                    article = self.docs_client.get_article(article_id)
                except HelpScoutError as e:
                    errors.append(f"Error processing article {article_id}: {e}")
                    self.logger.error(errors[-1])
                    continue

                if not article.text.strip():
                    self.logger.info(f"Skipping article {article.name} - no content")
                    continue

                result = self.ingest_article(article)
                if result['success']:
                    processed.append(article)
                    self.logger.info(f"✓ Processed article {len(processed)}: {article.name} ({article.id})")
                else:
                    errors.append(f"Error storing article {article_id}: {result['error']}")

        return {
            'success': True,
            'docs_processed': len(processed),
            'collections': len(collections),
            'storage_stats': self.store.get_storage_stats(),
            'preview': [article.summary() for article in processed[:3]],
            'errors': errors[:5]
        }

    def ingest_from_file(self, file_path: str, show_progress: bool = True) -> Dict[str, Any]:
        """
        Ingest articles from a JSON file holding a list of article records.

        Args:
            file_path: Path to JSON file
            show_progress: Show progress bar

        Returns:
            Dictionary with batch results:
                - total: int
                - successful: int
                - failed: int
                - processing_time: float
                - details: List of individual results
        """
        start_time = time.time()

        with open(file_path, 'r', encoding='utf-8') as f:
            records = json.load(f)

        if not isinstance(records, list):
            raise ValueError(f"{file_path} must contain a JSON list of articles")

        self.logger.info(f"Loaded {len(records)} articles from {file_path}")

        iterator = tqdm(records, desc="Ingesting articles") if show_progress else records
        results = [self.ingest_article(record) for record in iterator]

        successful = sum(1 for r in results if r['success'])
        return {
            'total': len(records),
            'successful': successful,
            'failed': len(results) - successful,
            'processing_time': time.time() - start_time,
            'details': results
        }

    def search(self, query_text: str, top_k: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Rank stored chunks against a query.

        Args:
            query_text: Query string
            top_k: Number of results to return

        Returns:
            List of result dictionaries with chunk fields, score and ranking mode
        """
        k = top_k if top_k is not None else self.config.top_k_default
        result = self.store.search(query_text, k)

        formatted_results = []
        for i, chunk in enumerate(result.chunks):
            formatted_results.append({
                'chunk_id': chunk.id,
                'article_id': chunk.article_id,
                'title': chunk.article_name,
                'url': chunk.url,
                'chunk': chunk.text,
                'chunk_index': chunk.chunk_index,
                'score': result.scores[i] if i < len(result.scores) else None,
                'mode': result.mode.value
            })

        return formatted_results

    def ask_question(self, question: str, top_k: Optional[int] = None) -> Dict[str, Any]:
        """
        Ask a question and get an AI-generated answer with sources.

        Args:
            question: User's question
            top_k: Number of context chunks to retrieve

        Returns:
            Dictionary with question, answer, sources, and metadata
        """
        try:
            return self.rag_service.answer(question, top_k=top_k)

        except (ValueError, RuntimeError) as e:
            self.logger.error(f"Error answering question: {e}")
            return {
                'question': question,
                'answer': f"Error: {str(e)}",
                'sources': [],
                'relevant_chunks': 0,
                'search_mode': None,
                'response_time': 0
            }

    def get_stats(self) -> Dict[str, Any]:
        """
        Get system statistics.

        Returns:
            Dictionary with storage counts and component settings
        """
        return {
            **self.store.get_storage_stats(),
            'embedding_model': self.config.ollama_model,
            'embedding_dimensions': getattr(self.embedding_service, 'dimensions', None),
            'persistence': repr(self.store.persistence),
            'chunker': repr(self.store.chunker)
        }

    def clear(self, persist: bool = False) -> bool:
        """
        Remove all articles and chunks from memory.

        Args:
            persist: Also overwrite the persisted snapshot with an empty collection

        Returns:
            True if the snapshot was overwritten
        """
        self.store.clear_articles()
        if persist:
            return self.store.persistence.save([])
        return False
