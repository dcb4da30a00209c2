"""
Content Loaders - Obtain raw text for a resource locator

Supports:
- Websites: fetched with requests, cleaned with BeautifulSoup
- Files: .md, .txt, .json, .yml, .yaml, .csv, .html and (with PyMuPDF) .pdf

Loader failures are terminal for the resource being ingested; nothing is
retried here.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable

import requests
from bs4 import BeautifulSoup

from greyseal.cancellation import CancellationContext, ensure_context
from greyseal.errors import TransientBackendError, ValidationError
from greyseal.security import validate_path

logger = logging.getLogger(__name__)

# Rich document parsers
try:
    import fitz  # PyMuPDF
    PYMUPDF_AVAILABLE = True
except ImportError:
    PYMUPDF_AVAILABLE = False


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for content loaders."""

    def load(self, locator: str, ctx: Optional[CancellationContext] = None) -> str:
        """Return the text behind a locator ('' when there is none)."""
        ...


STRIP_TAGS = ["script", "style", "nav", "footer", "header", "aside", "iframe", "noscript"]
STRIP_SELECTORS = [
    "[class*='ad-']", "[class*='advertisement']", "[id*='ad-']",
    ".sidebar", ".navigation", ".menu", ".comments",
]


def _clean_text(text: str) -> str:
    lines = (" ".join(line.split()) for line in text.splitlines())
    return "\n\n".join(line for line in lines if line)


def html_to_text(html: str) -> str:
    """Extract title, meta description and main content from HTML"""
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text().strip() if title_tag else ""
    description = ""
    meta = soup.find("meta", attrs={"name": "description"})
    if meta and meta.get("content"):
        description = meta["content"].strip()

    for tag in soup(STRIP_TAGS):
        tag.decompose()
    for selector in STRIP_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    main = soup.select_one("main, article, [role='main']") or soup.body or soup
    body = _clean_text(main.get_text(separator="\n"))

    parts = []
    if title:
        parts.append(f"Title: {title}")
    if description:
        parts.append(f"Description: {description}")
    if body:
        parts.append(body)
    return "\n\n".join(parts)


class WebsiteLoader:
    """Fetch a web page and reduce it to readable text"""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "Mozilla/5.0 (compatible; GreySealBot/1.0)",
        session: Optional[requests.Session] = None
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'text/html,application/xhtml+xml',
        })
        self.loaded_count = 0

    def load(self, locator: str, ctx: Optional[CancellationContext] = None) -> str:
        """
        Scrape a website

        Args:
            locator: URL (scheme optional; http:// is assumed)
            ctx: Cancellation/deadline context

        Returns:
            Title, description and main body text

        Raises:
            ValidationError: Empty locator
            TransientBackendError: Network failure or non-200 response
        """
        if not locator:
            raise ValidationError("path must be set for website resource")
        url = locator if locator.startswith("http") else f"http://{locator}"

        ctx = ensure_context(ctx)
        ctx.check("website load")
        remaining = ctx.remaining()
        timeout = min(self.timeout, remaining) if remaining is not None else self.timeout

        try:
            response = self.session.get(url, timeout=timeout)
        except requests.RequestException as e:
            raise TransientBackendError(f"Failed to fetch {url}: {e}") from e

        if response.status_code != 200:
            raise TransientBackendError(f"Failed to fetch {url}: bad status code {response.status_code}")

        text = html_to_text(response.text)
        self.loaded_count += 1
        logger.info(f"Scraped {url} ({len(text)} chars)")
        return text


class FileLoader:
    """Load documents from the local filesystem"""

    SUPPORTED_EXTENSIONS = {
        '.md', '.txt', '.json', '.yml', '.yaml', '.csv', '.html', '.htm',
        '.pdf',
    }

    def __init__(self, allowed_base_paths: Optional[List[Path]] = None):
        """
        Args:
            allowed_base_paths: Directories files may be read from (current directory if None)
        """
        self.allowed_base_paths = allowed_base_paths
        self.loaded_count = 0

    def load(self, locator: str, ctx: Optional[CancellationContext] = None) -> str:
        """
        Load a single file

        Args:
            locator: Path to file
            ctx: Cancellation/deadline context

        Returns:
            File text ('' for empty files)

        Raises:
            ValidationError: Missing file, unsupported type or path outside allowed directories
        """
        if not locator:
            raise ValidationError("path must be set for file resource")
        ensure_context(ctx).check("file load")

        path = validate_path(locator, self.allowed_base_paths)
        if not path.exists():
            raise ValidationError(f"File not found: {locator}")
        if path.suffix.lower() not in self.SUPPORTED_EXTENSIONS:
            raise ValidationError(f"Unsupported file type: {path.suffix}")

        try:
            if path.suffix.lower() == '.pdf':
                content = self._parse_pdf(path)
            elif path.suffix.lower() in ('.html', '.htm'):
                content = html_to_text(path.read_text(encoding='utf-8'))
            else:
                content = path.read_text(encoding='utf-8')
        except UnicodeDecodeError as e:
            raise ValidationError(f"{locator} is not valid UTF-8 text: {e}") from e
        except OSError as e:
            raise TransientBackendError(f"Error loading {locator}: {e}") from e

        if not content.strip():
            logger.warning(f"Empty file: {locator}")
            return ""

        self.loaded_count += 1
        return content

    def _parse_pdf(self, path: Path) -> str:
        """Parse PDF file using PyMuPDF"""
        if not PYMUPDF_AVAILABLE:
            raise ValidationError("PyMuPDF not installed. Run: pip install 'greyseal[pdf]'")

        try:
            doc = fitz.open(str(path))
        except RuntimeError as e:
            # fitz.FileDataError and friends subclass RuntimeError
            raise ValidationError(f"Unreadable PDF {path.name}: {e}") from e
        try:
            text_parts = []
            for page_num in range(len(doc)):
                text = doc[page_num].get_text()
                if text.strip():
                    text_parts.append(f"--- Page {page_num + 1} ---\n{text}")
        finally:
            doc.close()

        return "\n\n".join(text_parts)

    def get_stats(self) -> Dict:
        return {'total_loaded': self.loaded_count}


def discover_files(directory: str, allowed_base_paths: Optional[List[Path]] = None) -> List[Path]:
    """
    Find every loadable file under a directory

    Hidden files and directories are skipped. Results are sorted so repeated
    runs ingest in the same order.

    Raises:
        ValidationError: Directory missing or outside allowed directories
    """
    root = validate_path(directory, allowed_base_paths)
    if not root.is_dir():
        raise ValidationError(f"Not a directory: {directory}")

    files = []
    for path in root.rglob("*"):
        if any(part.startswith('.') for part in path.relative_to(root).parts):
            continue
        if path.is_file() and path.suffix.lower() in FileLoader.SUPPORTED_EXTENSIONS:
            files.append(path)
    return sorted(files)
