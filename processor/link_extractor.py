"""Link and image extraction from event descriptions."""
import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from processor.models import DEFAULT_IMAGE_TITLE, ConcertImage, ConcertLink

logger = logging.getLogger(__name__)

LINK_TICKETS = 'tickets'
LINK_SOCIAL = 'social'
LINK_VENUE = 'venue'
LINK_WEBSITE = 'website'

TICKET_URL_KEYWORDS = ('eventbrite', 'ticketmaster', 'billetto', 'ticnet')
TICKET_TEXT_KEYWORDS = ('tickets', 'biljetter')
SOCIAL_URL_KEYWORDS = ('facebook', 'instagram', 'twitter', 'youtube')
VENUE_TEXT_KEYWORDS = ('venue', 'plats', 'location')

IMAGE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'gif', 'webp')

URL_PATTERN = re.compile(r'https?://[^\s<>"\']+', re.IGNORECASE)
IMAGE_URL_PATTERN = re.compile(
    r'https?://[^\s<>"\']+\.(?:' + '|'.join(IMAGE_EXTENSIONS) + r')\b',
    re.IGNORECASE
)


def determine_link_type(url: str, text: str = '') -> str:
    """
    Classify a link; the first matching category wins.

    Args:
        url: Link target
        text: Visible link text

    Returns:
        One of "tickets", "social", "venue", "website"
    """
    url_lower = url.lower()
    text_lower = (text or '').lower()

    if (any(keyword in url_lower for keyword in TICKET_URL_KEYWORDS) or
            any(keyword in text_lower for keyword in TICKET_TEXT_KEYWORDS)):
        return LINK_TICKETS

    if any(keyword in url_lower for keyword in SOCIAL_URL_KEYWORDS):
        return LINK_SOCIAL

    if any(keyword in text_lower for keyword in VENUE_TEXT_KEYWORDS):
        return LINK_VENUE

    return LINK_WEBSITE


def extract_domain_name(url: str) -> str:
    """Host of ``url`` without a leading "www.", or the URL itself."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return url
    if not hostname:
        return url
    return hostname[4:] if hostname.startswith('www.') else hostname


def _parse(description: str) -> Optional[BeautifulSoup]:
    try:
        return BeautifulSoup(description, 'html.parser')
    except Exception as e:
        logger.debug(f"Could not parse description HTML: {e}")
        return None


def _strip_trailing_punctuation(url: str) -> str:
    return url.rstrip('.,;:!?)]')


def extract_links(description: Optional[str]) -> List[ConcertLink]:
    """
    Extract links from an event description.

    Anchors are read first, then bare URLs in the tag-stripped text are
    appended unless the exact URL was already found.

    Args:
        description: Event description, plain text or HTML

    Returns:
        Ordered list of ConcertLink objects (empty when nothing is found)
    """
    links: List[ConcertLink] = []
    if not description:
        return links

    soup = _parse(description)
    seen = set()

    # Anchors first
    if soup is not None:
        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href.lower().startswith('http') or href in seen:
                continue
            text = anchor.get_text(' ', strip=True) or href
            links.append(ConcertLink(url=href, text=text,
                                     type=determine_link_type(href, text)))
            seen.add(href)
        plain_text = soup.get_text(' ')
    else:
        plain_text = re.sub(r'<[^>]*>', ' ', description)

    # Then bare URLs not already found
    for match in URL_PATTERN.findall(plain_text):
        url = _strip_trailing_punctuation(match)
        if url in seen:
            continue
        links.append(ConcertLink(url=url, text=extract_domain_name(url),
                                 type=determine_link_type(url, '')))
        seen.add(url)

    return links


def extract_images(description: Optional[str]) -> List[ConcertImage]:
    """
    Extract image references from an event description.

    Args:
        description: Event description, plain text or HTML

    Returns:
        Ordered, de-duplicated list of ConcertImage objects
    """
    images: List[ConcertImage] = []
    if not description:
        return images

    seen = set()
    soup = _parse(description)

    # <img> tags first, then bare image URLs
    if soup is not None:
        for img in soup.find_all('img', src=True):
            src = img['src'].strip()
            if not src or src in seen:
                continue
            images.append(ConcertImage(url=src, title=img.get('alt') or DEFAULT_IMAGE_TITLE))
            seen.add(src)

    for url in IMAGE_URL_PATTERN.findall(description):
        if url in seen:
            continue
        images.append(ConcertImage(url=url))
        seen.add(url)

    return images
