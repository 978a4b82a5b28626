"""
RAG Service for Documentation Question Answering

Orchestrates the answer pipeline:
1. Chunk retrieval from the article store
2. Context construction from the retrieved chunks
3. LLM-based answer generation restricted to that context
4. Source collection for display
"""

import time
import logging
from typing import List, Dict, Optional, Any

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_ollama import ChatOllama

from ..storage.article_store import ArticleStore
from ..storage.models import ArticleChunk

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a documentation-based AI assistant.

STRICT RULE: You must ONLY use information from the documentation provided in the user's message. Do NOT use your general knowledge.

When the user message contains "Based on the following documentation:", you MUST:
1. Use ONLY the quoted documentation content for your answer
2. Quote specific phrases from the provided documentation
3. Reference the article names mentioned
4. Never add information not in the documentation
5. If the documentation doesn't fully answer the question, say so explicitly

FORBIDDEN: Generic advice, external knowledge, or information not in the provided documentation."""

NO_RESPONSE_ANSWER = "Sorry, I could not generate a response."


class RAGService:
    """
    Answers questions from the documentation held in an ArticleStore.
    """

    def __init__(
        self,
        store: ArticleStore,
        llm_model: str = "llama3.1:latest",
        top_k: int = 5,
        temperature: float = 0.3,
        max_tokens: int = 700,
        ollama_base_url: str = "http://localhost:11434",
        llm=None
    ):
        """
        Initialize the RAG service.

        Args:
            store: Article store to retrieve context from
            llm_model: Ollama chat model name
            top_k: Default number of context chunks to retrieve
            temperature: LLM temperature
            max_tokens: Maximum tokens in generated answer
            ollama_base_url: Base URL for Ollama service
            llm: Pre-built chat model (default: ChatOllama with the settings above)
        """
        self.store = store
        self.llm_model = llm_model
        self.top_k = top_k
        self.temperature = temperature
        self.max_tokens = max_tokens

        self.llm = llm or ChatOllama(
            model=llm_model,
            temperature=temperature,
            base_url=ollama_base_url,
            num_predict=max_tokens
        )

    def _build_context(self, question: str, chunks: List[ArticleChunk]) -> str:
        """
        Build the user message from the question and retrieved chunks.

        Args:
            question: User's question
            chunks: Retrieved chunks, most relevant first

        Returns:
            Message text for the LLM
        """
        if not chunks:
            return (
                f"I don't have any relevant documentation for this question: {question}.\n\n"
                "I can still try to help with general questions about the platform or its "
                "documentation structure. Please rephrase your question if it is about "
                "something specific."
            )

        parts = ["Based on the following documentation:\n"]
        for i, chunk in enumerate(chunks, 1):
            parts.append(f"{i}. From \"{chunk.article_name}\":\n{chunk.text}\n")

        parts.append(
            "Please answer the user's question based on this documentation. "
            "If the documentation doesn't contain the answer, say so honestly.\n\n"
            f"User question: {question}"
        )
        return "\n".join(parts)

    def _collect_sources(self, chunks: List[ArticleChunk]) -> List[Dict[str, str]]:
        """Unique sources by URL, in rank order."""
        sources = []
        seen_urls = set()

        for chunk in chunks:
            if chunk.url in seen_urls:
                continue
            seen_urls.add(chunk.url)
            sources.append({
                'name': chunk.article_name,
                'url': chunk.url
            })

        return sources

    def _generate_answer(self, context: str) -> str:
        """
        Generate answer using LLM.

        Raises:
            RuntimeError: If LLM generation fails
        """
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=context),
        ]

        try:
            response = self.llm.invoke(messages)
        except Exception as e:
            raise RuntimeError(f"Error generating answer with LLM: {str(e)}") from e

        content = response.content if hasattr(response, 'content') else str(response)
        return content.strip() if isinstance(content, str) and content.strip() else NO_RESPONSE_ANSWER

    def answer(self, question: str, top_k: Optional[int] = None) -> Dict[str, Any]:
        """
        Answer a question from the stored documentation.

        Args:
            question: User's question
            top_k: Number of context chunks (overrides default)

        Returns:
            Dictionary with:
                - question: Original question
                - answer: Generated answer
                - sources: Unique source articles (name, url)
                - relevant_chunks: Number of chunks used as context
                - search_mode: How the chunks were ranked
                - response_time: Seconds taken

        Raises:
            ValueError: If question is empty
            RuntimeError: If the LLM call fails
        """
        if not question or not question.strip():
            raise ValueError("Question cannot be empty")

        start_time = time.time()
        k = top_k if top_k is not None else self.top_k

        result = self.store.search(question, k)
        logger.info(f"Found {len(result.chunks)} relevant chunks")

        context = self._build_context(question, result.chunks)
        logger.debug(f"Context length: {len(context)} chars")

        answer = self._generate_answer(context)

        return {
            'question': question,
            'answer': answer,
            'sources': self._collect_sources(result.chunks),
            'relevant_chunks': len(result.chunks),
            'search_mode': result.mode.value,
            'response_time': time.time() - start_time
        }
