"""Google Drive image URL resolution and folder image search."""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx
import requests

from processor.models import DEFAULT_IMAGE_TITLE, Attachment, ConcertImage

logger = logging.getLogger(__name__)

DEFAULT_THUMBNAIL_SIZE = 800

_FILE_PATH_PATTERN = re.compile(r'/file/d/([a-zA-Z0-9_-]+)')
_ID_PARAM_PATTERN = re.compile(r'[?&]id=([a-zA-Z0-9_-]+)')
_LH3_PATTERN = re.compile(r'lh3\.googleusercontent\.com/d/([a-zA-Z0-9_-]+)')


def extract_drive_file_id(url: Optional[str]) -> Optional[str]:
    """
    Pull the Drive file identifier out of a shareable link.

    Recognizes ``/file/d/<id>/view`` paths, ``?id=<id>`` query parameters
    (``open?id=``, ``uc?id=``, ``thumbnail?id=``) and
    ``lh3.googleusercontent.com/d/<id>`` URLs.

    Args:
        url: Drive URL

    Returns:
        File ID, or None if the URL has none of the known shapes
    """
    if not url:
        return None
    for pattern in (_FILE_PATH_PATTERN, _ID_PARAM_PATTERN, _LH3_PATTERN):
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def thumbnail_url(file_id: str, size: int = DEFAULT_THUMBNAIL_SIZE) -> str:
    return f"https://drive.google.com/thumbnail?id={file_id}&sz=w{size}"


def direct_content_url(file_id: str) -> str:
    return f"https://drive.google.com/uc?export=view&id={file_id}"


def googleusercontent_url(file_id: str, size: Optional[int] = None) -> str:
    base = f"https://lh3.googleusercontent.com/d/{file_id}"
    return f"{base}=w{size}" if size else base


def drive_url_variants(url: Optional[str], size: int = DEFAULT_THUMBNAIL_SIZE) -> List[str]:
    """
    List the embeddable forms of a Drive file, preferred form first.

    Args:
        url: Drive URL
        size: Width hint for the sized forms

    Returns:
        Thumbnail, direct-content and googleusercontent URLs, or
        ``[url]`` when no file ID can be extracted
    """
    file_id = extract_drive_file_id(url)
    if not file_id:
        return [url] if url else []
    return [
        thumbnail_url(file_id, size),
        direct_content_url(file_id),
        googleusercontent_url(file_id, size),
    ]


def resolve_drive_url(url: Optional[str], size: int = DEFAULT_THUMBNAIL_SIZE) -> Optional[str]:
    """
    Convert a Drive link into a directly embeddable image URL.

    No request is made; the URL is only rewritten. Inputs without a
    recognizable file ID are returned unchanged.

    Args:
        url: Drive URL or any other image URL
        size: Thumbnail width hint

    Returns:
        Embeddable URL (None only when ``url`` is empty)
    """
    variants = drive_url_variants(url, size)
    if not variants:
        return None
    if len(variants) > 1:
        logger.debug(f"Resolved Drive URL {url} -> {variants[0]} (alternatives: {variants[1:]})")
    return variants[0]


def images_from_attachments(attachments: Iterable[Attachment],
                            size: int = DEFAULT_THUMBNAIL_SIZE) -> List[ConcertImage]:
    """
    Turn image attachments into concert images.

    Every attachment with an ``image/`` MIME type is accepted without
    checking that the resolved URL actually loads.

    Args:
        attachments: Event attachments
        size: Thumbnail width hint

    Returns:
        List of ConcertImage objects, in attachment order
    """
    images = []
    for attachment in attachments:
        if not (attachment.mime_type or '').startswith('image/'):
            continue
        source_url = attachment.file_url
        if not source_url and attachment.file_id:
            source_url = direct_content_url(attachment.file_id)
        url = resolve_drive_url(source_url, size)
        if not url:
            continue
        images.append(ConcertImage(
            url=url,
            title=attachment.title or DEFAULT_IMAGE_TITLE,
            mime_type=attachment.mime_type,
            original_url=attachment.file_url or None,
        ))
    return images


class DriveImageFinder:
    """Finds concert images by file name in a shared Drive folder."""

    FILES_URL = "https://www.googleapis.com/drive/v3/files"
    MAX_IMAGES = 5

    def __init__(self, api_key: str, parent_folder_id: str, timeout: int = 30,
                 session: Optional[requests.Session] = None):
        """
        Initialize the finder.

        Args:
            api_key: Google API key with Drive read access
            parent_folder_id: Folder holding the concert images
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session
        """
        self.api_key = api_key
        self.parent_folder_id = parent_folder_id
        self.timeout = timeout
        self.session = session or requests.Session()

    @staticmethod
    def search_terms(title: str) -> List[str]:
        """
        Name fragments to search for, in order.

        Args:
            title: Cleaned concert title

        Returns:
            The title without bracketed tags, then its first word when that
            differs and is longer than two characters; empty for a blank title
        """
        # Strip bracketed tags
        clean_title = re.sub(r'[\[(][^\])]*[\])]', '', title or '').strip()
        if not clean_title:
            return []
        # Full title, then its first word
        terms = [clean_title]
        first_word = clean_title.split(' ')[0]
        if len(first_word) > 2 and first_word != clean_title:
            terms.append(first_word)
        return terms

    def find_images(self, title: str) -> List[ConcertImage]:
        """
        Search the folder for images whose name contains the concert title.

        Retries with the first word of the title when nothing matches.
        Failures are logged and yield an empty list.

        Args:
            title: Cleaned concert title

        Returns:
            Up to MAX_IMAGES ConcertImage objects
        """
        # Stop at the first term that matches
        terms = self.search_terms(title)
        files = []
        try:
            for term in terms:
                files = self._search(term)
                if files:
                    break
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Could not search Drive images for '{title}': {e}")
            return []
        return self._to_images(files, terms)

    async def find_images_async(self, title: str,
                                http_client: httpx.AsyncClient) -> List[ConcertImage]:
        """
        Non-blocking variant of ``find_images``.

        Args:
            title: Cleaned concert title
            http_client: Async client to send the requests with

        Returns:
            Up to MAX_IMAGES ConcertImage objects
        """
        terms = self.search_terms(title)
        files = []
        try:
            for term in terms:
                response = await http_client.get(self.FILES_URL, params=self._query_params(term),
                                                 timeout=self.timeout)
                response.raise_for_status()
                files = self._files(response.json())
                if files:
                    break
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not search Drive images for '{title}': {e}")
            return []
        return self._to_images(files, terms)

    def _query_params(self, name_fragment: str) -> Dict[str, str]:
        escaped = name_fragment.replace("\\", "\\\\").replace("'", "\\'")
        query = (
            f"'{self.parent_folder_id}' in parents and "
            f"mimeType contains 'image/' and name contains '{escaped}' and trashed = false"
        )
        return {
            'q': query,
            'fields': 'files(id,name,mimeType)',
            'key': self.api_key,
        }

    @staticmethod
    def _files(data: Any) -> List[dict]:
        files = data.get('files') if isinstance(data, dict) else None
        if not isinstance(files, list):
            return []
        return [f for f in files if isinstance(f, dict)]

    def _search(self, name_fragment: str) -> List[dict]:
        response = self.session.get(
            self.FILES_URL,
            params=self._query_params(name_fragment),
            timeout=self.timeout
        )
        response.raise_for_status()
        return self._files(response.json())

    def _to_images(self, files: List[dict], terms: List[str]) -> List[ConcertImage]:
        if not terms:
            return []
        images = [
            ConcertImage(
                url=googleusercontent_url(str(f['id'])),
                title=str(f.get('name') or DEFAULT_IMAGE_TITLE),
                mime_type=str(f.get('mimeType') or 'image/unknown'),
            )
            for f in files[:self.MAX_IMAGES]
            if f.get('id')
        ]
        logger.info(f"Found {len(images)} Drive images for concert: {terms[0]}")
        return images
