"""
Soft 404 Detection

A soft 404 is a page served with a success status whose content says the
resource does not exist. Only the page title and the first h1 are inspected,
and long ones are treated as real content: a blog post titled "404 reasons
the Roman Empire fell" is not an error page.
"""

import re

from bs4 import BeautifulSoup

MAX_TITLE_LENGTH = 80
MAX_HEADING_LENGTH = 50

# Patterns that mark a title or heading as being an error page, rather than
# merely mentioning "404" or "not found"
ERROR_PAGE_PATTERNS = [
    re.compile(r'^404\b'),
    re.compile(r'\b404\s*(error|page|-)\b'),
    re.compile(r'\berror\s*404\b'),
    re.compile(r'^page not found'),
    re.compile(r'^not found'),
    re.compile(r"page\s*(not|can'?t be)\s*found"),
    re.compile(r'^oops'),
]


def _text_of(element):
    if element is None:
        return ''
    return element.get_text().lower().strip()


def looks_like_error_page(text):
    """Check if a normalized title or heading matches a structural error pattern"""
    return any(pattern.search(text) for pattern in ERROR_PAGE_PATTERNS)


def is_soft_not_found(body, patterns=(), max_title_length=MAX_TITLE_LENGTH,
                      max_heading_length=MAX_HEADING_LENGTH):
    """Check if an HTML body is a not-found page served with a success status"""
    # No body says nothing about whether the page exists
    if not body:
        return False

    soup = BeautifulSoup(body, 'html.parser')
    title = _text_of(soup.title)
    heading = _text_of(soup.find('h1'))
    short_heading = len(heading) < max_heading_length

    if looks_like_error_page(title):
        return True

    if short_heading and looks_like_error_page(heading):
        return True

    for pattern in patterns:
        pattern = pattern.lower()
        if not pattern:
            continue
        if len(title) < max_title_length and pattern in title:
            return True
        if short_heading and pattern in heading:
            return True

    return False
