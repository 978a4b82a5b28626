"""
Tests for the Chunk Retriever

Covers cosine similarity, keyword scoring, strategy selection and the
unranked fallback used when ranking fails.
"""

import pytest
import numpy as np

from kb_chat.query.retriever import (
    Retriever,
    SearchMode,
    SearchResult,
    cosine_similarity,
    cosine_similarities,
    keyword_score,
)
from kb_chat.storage.models import ArticleChunk, make_chunk_id

from conftest import FakeEmbedder, FailingEmbedder


def make_chunk(article_id, name, text, embedding=None, index=0):
    return ArticleChunk(
        id=make_chunk_id(article_id, index),
        article_id=article_id,
        article_name=name,
        text=text,
        url=f"https://docs.example.com/article/{article_id}",
        last_modified="2024-01-01T00:00:00Z",
        chunk_index=index,
        embedding=embedding
    )


@pytest.fixture
def plain_chunks():
    """Chunks without embeddings, so ranking uses keyword scoring."""
    return [
        make_chunk('billing', 'Billing and Plans', 'Plans are billed monthly per device slot.'),
        make_chunk('android', 'Testing Your Android App', 'Upload a debug APK and start the run.'),
        make_chunk('ci', 'Continuous Integration Setup', 'Store the API token as a CI secret.'),
    ]


class TestCosineSimilarity:
    """Test the similarity functions."""

    def test_identical_vectors(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError, match="dimensions differ"):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_matrix_form_matches_pairwise(self):
        query = [1.0, 0.5, 0.0]
        matrix = np.array([[1.0, 0.5, 0.0], [0.0, 0.0, 1.0], [2.0, 1.0, 0.0]])

        similarities = cosine_similarities(query, matrix)

        for row, value in zip(matrix, similarities):
            assert value == pytest.approx(cosine_similarity(query, row))

    def test_matrix_zero_row_scores_zero(self):
        similarities = cosine_similarities([1.0, 0.0], np.array([[0.0, 0.0], [1.0, 0.0]]))
        assert similarities[0] == 0.0
        assert similarities[1] == pytest.approx(1.0)

    def test_matrix_width_mismatch_raises(self):
        with pytest.raises(ValueError):
            cosine_similarities([1.0, 0.0, 0.0], np.array([[1.0, 0.0]]))


class TestKeywordScore:
    """Test additive keyword scoring."""

    def test_phrase_in_title(self):
        chunk = make_chunk('a', 'Android Testing Guide', 'Nothing relevant here.')
        # Phrase in title (10) plus both words in title (3 + 3)
        assert keyword_score('android testing', chunk) == 16

    def test_phrase_in_body(self):
        chunk = make_chunk('a', 'Guide', 'Start android testing from the dashboard.')
        # Phrase in body (5) plus both words in body (1 + 1)
        assert keyword_score('android testing', chunk) == 7

    def test_case_insensitive(self):
        chunk = make_chunk('a', 'ANDROID', 'apk')
        assert keyword_score('Android', chunk) == keyword_score('android', chunk)

    def test_no_match_scores_zero(self):
        chunk = make_chunk('a', 'Billing and Plans', 'Plans are billed monthly.')
        assert keyword_score('espresso', chunk) == 0

    def test_blank_query_scores_zero(self):
        chunk = make_chunk('a', 'Billing', 'Plans')
        assert keyword_score('   ', chunk) == 0


class TestKeywordMode:
    """Test ranking over a corpus without embeddings."""

    def test_relevant_title_ranks_first(self, plain_chunks):
        retriever = Retriever(FailingEmbedder())
        result = retriever.rank('android testing', plain_chunks, limit=3)

        assert result.mode == SearchMode.KEYWORD
        assert result.chunks[0].article_name == 'Testing Your Android App'

    def test_unmatched_chunks_excluded(self, plain_chunks):
        retriever = Retriever(FailingEmbedder())
        result = retriever.rank('android testing', plain_chunks, limit=3)

        assert [chunk.article_id for chunk in result.chunks] == ['android']

    def test_no_embedding_call_in_keyword_mode(self, plain_chunks):
        embedder = FailingEmbedder()
        Retriever(embedder).rank('android', plain_chunks, limit=3)
        assert embedder.calls == 0

    def test_ties_keep_store_order(self):
        chunks = [
            make_chunk('first', 'Device setup', 'Pick a device.'),
            make_chunk('second', 'Device setup', 'Pick a device.'),
            make_chunk('third', 'Device setup', 'Pick a device.'),
        ]
        result = Retriever(FailingEmbedder()).rank('device', chunks, limit=3)

        assert [chunk.article_id for chunk in result.chunks] == ['first', 'second', 'third']

    def test_scores_descending(self, plain_chunks):
        plain_chunks.append(make_chunk('android-2', 'Other', 'android notes'))
        result = Retriever(FailingEmbedder()).rank('android testing', plain_chunks, limit=5)

        assert result.scores == sorted(result.scores, reverse=True)

    def test_limit_respected(self):
        chunks = [make_chunk(f'a{i}', 'Device guide', 'device') for i in range(10)]
        result = Retriever(FailingEmbedder()).rank('device', chunks, limit=4)
        assert len(result) == 4


class TestSemanticMode:
    """Test ranking over a corpus with embeddings."""

    def test_most_similar_chunk_first(self):
        embedder = FakeEmbedder()
        texts = [
            'billing invoices monthly plans',
            'espresso instrumentation tests on android devices',
            'api token secret for ci pipelines',
        ]
        chunks = [
            make_chunk(f'a{i}', f'Article {i}', text, embedder.embed(text).tolist())
            for i, text in enumerate(texts)
        ]

        result = Retriever(embedder).rank(texts[1], chunks, limit=3)

        assert result.mode == SearchMode.SEMANTIC
        assert result.chunks[0].article_id == 'a1'
        assert result.scores[0] == pytest.approx(1.0, abs=1e-6)

    def test_chunks_without_embeddings_left_out(self):
        embedder = FakeEmbedder()
        chunks = [
            make_chunk('plain', 'Android', 'android testing', None),
            make_chunk('embedded', 'Billing', 'billing plans', embedder.embed('billing plans').tolist()),
        ]

        result = Retriever(embedder).rank('android testing', chunks, limit=5)

        assert result.mode == SearchMode.SEMANTIC
        assert [chunk.article_id for chunk in result.chunks] == ['embedded']

    def test_equal_similarity_keeps_store_order(self):
        embedder = FakeEmbedder()
        vector = embedder.embed('device farm').tolist()
        chunks = [make_chunk(f'a{i}', 'Same', 'device farm', list(vector)) for i in range(3)]

        result = Retriever(embedder).rank('device farm', chunks, limit=3)

        assert [chunk.article_id for chunk in result.chunks] == ['a0', 'a1', 'a2']


class TestFallback:
    """Test degradation when ranking raises."""

    def test_query_embedding_failure_returns_first_chunks(self):
        embedder = FakeEmbedder()
        chunks = [
            make_chunk(f'a{i}', f'Article {i}', f'text {i}', embedder.embed(f'text {i}').tolist())
            for i in range(6)
        ]

        result = Retriever(FailingEmbedder()).rank('anything', chunks, limit=4)

        assert result.mode == SearchMode.FALLBACK
        assert result.degraded
        assert [chunk.article_id for chunk in result.chunks] == ['a0', 'a1', 'a2', 'a3']
        assert 'OllamaConnectionError' in result.error

    def test_dimension_mismatch_falls_back(self):
        chunks = [
            make_chunk('a0', 'A', 'text', FakeEmbedder(dimensions=32).embed('text').tolist()),
        ]
        result = Retriever(FakeEmbedder(dimensions=16)).rank('text', chunks, limit=5)

        assert result.mode == SearchMode.FALLBACK
        assert len(result) == 1

    def test_fallback_with_fewer_chunks_than_limit(self):
        chunks = [make_chunk('a0', 'A', 'text', [1.0, 0.0])]
        result = Retriever(FailingEmbedder()).rank('text', chunks, limit=10)
        assert len(result) == 1


class TestLimits:
    """Test degenerate limits and queries."""

    @pytest.mark.parametrize("limit", [0, -3])
    def test_non_positive_limit_returns_nothing(self, plain_chunks, limit):
        result = Retriever(FailingEmbedder()).rank('android', plain_chunks, limit=limit)
        assert len(result) == 0

    def test_blank_query_returns_unranked_chunks(self):
        """A blank query still yields content, in store order and without embedding."""
        embedder = FakeEmbedder()
        embedded = [make_chunk(str(i), f"Article {i}", "Body text.", embedding=embedder.embed("body").tolist())
                    for i in range(4)]
        embedder.calls.clear()

        result = Retriever(embedder).rank('   ', embedded, limit=2)

        assert result.degraded
        assert [chunk.id for chunk in result.chunks] == [embedded[0].id, embedded[1].id]
        assert embedder.calls == []

    def test_blank_query_keyword_corpus(self, plain_chunks):
        result = Retriever(FailingEmbedder()).rank('', plain_chunks, limit=5)

        assert result.mode == SearchMode.FALLBACK
        assert result.chunks == plain_chunks[:5]

    def test_empty_corpus(self):
        result = Retriever(FakeEmbedder()).rank('android', [], limit=5)
        assert isinstance(result, SearchResult)
        assert len(result) == 0
