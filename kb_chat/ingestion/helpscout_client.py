"""
Help Scout Docs Client

Fetches collections and articles from the Help Scout Docs API and converts
them into ``Article`` objects ready for the store.
"""

import re
import time
import logging
from typing import List, Dict, Optional, Any

import requests
from bs4 import BeautifulSoup

from ..storage.models import Article

logger = logging.getLogger(__name__)


class HelpScoutError(Exception):
    """Raised when the Docs API cannot be reached or answers unexpectedly."""
    pass


def html_to_text(html: str) -> str:
    """
    Convert article HTML into plain text, keeping paragraph breaks.

    Args:
        html: Article body as HTML

    Returns:
        Plain text with collapsed whitespace
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(['script', 'style']):
        tag.decompose()

    text = soup.get_text(separator='\n')

    # Normalize whitespace
    text = re.sub(r'[ \t\r\f\v]+', ' ', text)
    text = re.sub(r' *\n *', '\n', text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


def _extract_items(payload: Any, key: str) -> Optional[List[Dict]]:
    """Find the item list in one of the response shapes the API uses."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None

    nested = payload.get(key)
    if isinstance(nested, dict) and isinstance(nested.get('items'), list):
        return nested['items']
    if isinstance(nested, list):
        return nested
    if isinstance(payload.get('items'), list):
        return payload['items']
    return None


class HelpScoutDocsClient:
    """
    Read-only client for the Help Scout Docs API.

    Authentication uses the API key as basic-auth username with a dummy
    password. Timeouts and connection errors are retried with exponential
    backoff; HTTP errors are raised immediately.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://docsapi.helpscout.net/v1",
        timeout: int = 30,
        max_retries: int = 3,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: Help Scout Docs API key
            base_url: API root URL
            timeout: Request timeout in seconds
            max_retries: Attempts per request for timeouts and connection errors
            session: Optional requests session
        """
        if not api_key:
            raise HelpScoutError("HelpScout API key not configured")

        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or requests.Session()

    def _get(self, path: str) -> Any:
        """
        GET a Docs API path and decode the JSON body.

        Raises:
            HelpScoutError: On HTTP errors, undecodable bodies, or exhausted retries
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        last_error = None

        for attempt in range(self.max_retries):
            try:
                response = self.session.get(
                    url,
                    auth=(self.api_key, 'X'),
                    headers={'Content-Type': 'application/json'},
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                last_error = e
                logger.warning(f"Request to {url} failed on attempt {attempt + 1}/{self.max_retries}: {e}")
                if attempt < self.max_retries - 1:
                    wait_time = 2 ** attempt  # Exponential backoff
                    time.sleep(wait_time)

            except requests.exceptions.HTTPError as e:
                status = e.response.status_code if e.response is not None else 'unknown'
                raise HelpScoutError(f"HTTP {status} from {url}") from e
            except ValueError as e:
                raise HelpScoutError(f"Invalid JSON from {url}: {e}") from e
            except requests.exceptions.RequestException as e:
                raise HelpScoutError(f"Error requesting {url}: {e}") from e

        raise HelpScoutError(
            f"Failed to fetch {url} after {self.max_retries} attempts: {last_error}"
        )

    def list_collections(self) -> List[Dict]:
        """
        List all Docs collections.

        Raises:
            HelpScoutError: If the response holds no recognisable collection list
        """
        payload = self._get('collections')
        collections = _extract_items(payload, 'collections')
        if collections is None:
            raise HelpScoutError(f"Cannot find collections array in response: {str(payload)[:200]}")

        logger.info(f"Found {len(collections)} collections")
        return collections

    def list_articles(self, collection_id: str) -> List[Dict]:
        """List article references in a collection (empty if the shape is unknown)."""
        payload = self._get(f'collections/{collection_id}/articles')
        articles = _extract_items(payload, 'articles')
        if articles is None:
            logger.info(f"No articles found in collection {collection_id}")
            return []
        return articles

    def get_article(self, article_id: str) -> Article:
        """
        Fetch one article with its full body.

        Raises:
            HelpScoutError: If the response has no article object
        """
        payload = self._get(f'articles/{article_id}')
        data = payload.get('article') if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise HelpScoutError(f"Article {article_id} response has no article object")

        return Article(
            id=str(data.get('id', article_id)),
            name=data.get('name', ''),
            text=html_to_text(data.get('text') or ''),
            url=data.get('publicUrl') or '',
            last_modified=data.get('updatedAt') or ''
        )
