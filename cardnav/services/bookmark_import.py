from __future__ import annotations

import logging
from dataclasses import dataclass, field
from html.parser import HTMLParser

LOGGER = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024
MAX_TEXT_LENGTH = 500
MAX_URL_LENGTH = 2048
ALLOWED_URL_PREFIXES = ("http://", "https://")
TOOLBAR_ATTRIBUTE = "personal_toolbar_folder"

ERROR_EMPTY_FOLDER = "Skipped a folder with an empty name"
ERROR_NO_BOOKMARK_LIST = "No bookmark list found in document"

# Start tags that abandon an <A> or <H3> still waiting for its end tag.
_STRUCTURAL_TAGS = {"a", "h3", "dt", "dl"}


@dataclass
class BookmarkRecord:
    title: str
    url: str
    root_folder: str | None = None
    folder_path: list[str] = field(default_factory=list)
    order: int = 0


@dataclass
class ParseResult:
    bookmarks: list[BookmarkRecord] = field(default_factory=list)
    root_folders: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class _OpenFolder:
    name: str
    is_toolbar: bool


@dataclass
class _PendingElement:
    tag: str
    attrs: dict[str, str | None]
    text: list[str] = field(default_factory=list)


def sanitize_string(value) -> str:
    if not value or not isinstance(value, str):
        return ""
    return value.replace("\xa0", " ").strip()[:MAX_TEXT_LENGTH]


def sanitize_url(value) -> str:
    if not value or not isinstance(value, str):
        return ""
    url = value.strip()
    if not url.startswith(ALLOWED_URL_PREFIXES):
        return ""
    return url[:MAX_URL_LENGTH]


def _is_toolbar_folder(attrs: dict[str, str | None]) -> bool:
    value = attrs.get(TOOLBAR_ATTRIBUTE)
    if not isinstance(value, str):
        return False
    return value.strip().strip("'\"").lower() == "true"


class _BookmarkHTMLParser(HTMLParser):
    """Single pass over a Netscape bookmark export.

    Folders are tracked on a stack: an <H3> pushes, every </DL> pops. <DT>
    entries are never closed in these files, so no tree is built.
    """

    def __init__(self, result: ParseResult) -> None:
        super().__init__(convert_charrefs=True)
        self.result = result
        self.saw_list = False
        self._folders: list[_OpenFolder] = []
        self._inside_toolbar = False
        self._seen_root_folders: set[str] = set()
        self._pending: _PendingElement | None = None
        self._order = 0

    def handle_starttag(self, tag, attrs):
        if tag not in _STRUCTURAL_TAGS:
            return
        # an anchor or heading without its end tag is dropped
        self._pending = None
        if tag == "dl":
            self.saw_list = True
        elif tag in ("a", "h3"):
            self._pending = _PendingElement(tag=tag, attrs=dict(attrs))

    def handle_endtag(self, tag):
        if tag == "dl":
            self._pending = None
            self._close_folder()
            return

        pending = self._pending
        if pending is None or pending.tag != tag:
            return
        self._pending = None
        text = sanitize_string("".join(pending.text))
        if tag == "h3":
            self._open_folder(text, pending.attrs)
        else:
            self._add_bookmark(text, pending.attrs.get("href"))

    def handle_data(self, data):
        if self._pending is not None:
            self._pending.text.append(data)

    def _close_folder(self) -> None:
        if not self._folders:
            return
        if self._folders.pop().is_toolbar:
            self._inside_toolbar = False

    def _open_folder(self, name: str, attrs: dict[str, str | None]) -> None:
        if not name:
            self.result.errors.append(ERROR_EMPTY_FOLDER)
            return

        if _is_toolbar_folder(attrs):
            self._folders.append(_OpenFolder(name=name, is_toolbar=True))
            self._inside_toolbar = True
            return

        self._folders.append(_OpenFolder(name=name, is_toolbar=False))
        if self._inside_toolbar:
            depth = sum(1 for folder in self._folders if not folder.is_toolbar)
            if depth == 1 and name not in self._seen_root_folders:
                self._seen_root_folders.add(name)
                self.result.root_folders.append(name)

    def _add_bookmark(self, title: str, href: str | None) -> None:
        url = sanitize_url(href)
        if not url:
            if title:
                self.result.errors.append(f'Skipped bookmark "{title}": invalid URL')
            return

        folders = [folder.name for folder in self._folders if not folder.is_toolbar]
        self.result.bookmarks.append(
            BookmarkRecord(
                title=title or url,
                url=url,
                root_folder=folders[0] if folders else None,
                folder_path=folders[1:],
                order=self._order,
            )
        )
        self._order += 1


def parse_bookmark_html(html: str) -> ParseResult:
    result = ParseResult()
    parser = _BookmarkHTMLParser(result)
    try:
        parser.feed(html or "")
        parser.close()
    except Exception as exc:
        result.errors.append(f"Parse error: {exc}")

    if not parser.saw_list:
        result = ParseResult(errors=[ERROR_NO_BOOKMARK_LIST])

    LOGGER.debug(
        "Parsed %d bookmarks (%d errors)", len(result.bookmarks), len(result.errors)
    )
    return result
