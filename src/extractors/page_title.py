"""
Fetch a page title for link entries.
"""

import requests
from bs4 import BeautifulSoup

from settings import get_setting

USER_AGENT = 'Mozilla/5.0 (compatible; entries/0.1)'


def fetch_page_title(url: str, timeout: int = None) -> str:
    """
    Download a page and return its <title> text ('' when there is none).

    Raises:
        requests.RequestException: On network errors or non-2xx responses
    """
    if timeout is None:
        timeout = int(get_setting('HTTP_TIMEOUT', '15'))

    response = requests.get(url, timeout=timeout, headers={'User-Agent': USER_AGENT})
    response.raise_for_status()

    soup = BeautifulSoup(response.text, 'lxml')
    if soup.title is None or soup.title.string is None:
        return ''
    return ' '.join(soup.title.string.split())


def build_link_entry(url: str, timeout: int = None) -> str:
    """Entry content for a link: title line, then the URL."""
    return f"{fetch_page_title(url, timeout)}\n{url}\n"
