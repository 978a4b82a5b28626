"""
Article and Chunk Models

Plain dataclasses for ingested articles and their retrievable chunks.
Chunks serialize to the camelCase dict layout used by the chunk snapshot file.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any


def make_chunk_id(article_id: str, chunk_index: int) -> str:
    """Derive the store-wide chunk id from its article and position."""
    return f"{article_id}_chunk_{chunk_index}"


@dataclass
class ArticleChunk:
    """A bounded slice of an article's text, the unit of retrieval."""
    id: str
    article_id: str
    article_name: str
    text: str
    url: str
    last_modified: str
    chunk_index: int
    embedding: Optional[List[float]] = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the snapshot dictionary layout."""
        data = {
            'id': self.id,
            'articleId': self.article_id,
            'articleName': self.article_name,
            'text': self.text,
            'url': self.url,
            'lastModified': self.last_modified,
            'chunkIndex': self.chunk_index,
        }
        if self.embedding is not None:
            data['embedding'] = [float(x) for x in self.embedding]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ArticleChunk':
        """
        Build a chunk from a snapshot dictionary.

        Raises:
            KeyError: If a required field is missing
        """
        article_id = str(data['articleId'])
        chunk_index = int(data['chunkIndex'])
        embedding = data.get('embedding')

        return cls(
            id=data.get('id') or make_chunk_id(article_id, chunk_index),
            article_id=article_id,
            article_name=data.get('articleName', ''),
            text=data['text'],
            url=data.get('url', ''),
            last_modified=data.get('lastModified', ''),
            chunk_index=chunk_index,
            embedding=[float(x) for x in embedding] if embedding else None
        )


@dataclass
class Article:
    """A documentation article together with its current chunks."""
    id: str
    name: str
    text: str
    url: str = ''
    last_modified: str = ''
    chunks: List[ArticleChunk] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Article':
        """
        Build an article from a source record.

        Accepts both ``lastModified`` and ``last_modified`` keys.

        Raises:
            KeyError: If ``id`` is missing
        """
        return cls(
            id=str(data['id']),
            name=data.get('name', ''),
            text=data.get('text', ''),
            url=data.get('url', ''),
            last_modified=data.get('lastModified', data.get('last_modified', ''))
        )

    def summary(self) -> Dict[str, Any]:
        """Short description used in ingestion previews."""
        return {
            'id': self.id,
            'name': self.name,
            'text_length': len(self.text or ''),
        }
