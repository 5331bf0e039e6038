import time

from cardnav.services.bookmark_import import (
    ERROR_EMPTY_FOLDER,
    ERROR_NO_BOOKMARK_LIST,
    parse_bookmark_html,
    sanitize_url,
)


def test_parse_bookmark_html_handles_nested_netscape_structure():
    html = """
<!DOCTYPE NETSCAPE-Bookmark-file-1>
<DL><p>
  <DT><H3>Root Folder</H3>
  <DL><p>
    <DT><A HREF="https://example.com/a">A</A>
    <DT><H3>Inner Folder</H3>
    <DL><p>
      <DT><A HREF="https://example.com/b">B</A>
      <DT><A HREF="https://example.com/c#frag">C</A>
    </DL><p>
  </DL><p>
  <DT><A HREF="https://example.com/root">Root Link</A>
</DL><p>
"""

    result = parse_bookmark_html(html)
    urls = [row.url for row in result.bookmarks]
    assert urls == [
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/c#frag",
        "https://example.com/root",
    ]

    rows = result.bookmarks
    assert (rows[0].root_folder, rows[0].folder_path) == ("Root Folder", [])
    assert (rows[1].root_folder, rows[1].folder_path) == (
        "Root Folder",
        ["Inner Folder"],
    )
    assert rows[2].folder_path == ["Inner Folder"]
    assert (rows[3].root_folder, rows[3].folder_path) == (None, [])
    assert [row.order for row in rows] == [0, 1, 2, 3]
    assert result.errors == []


def test_toolbar_folder_is_scope_only_and_its_children_are_root_folders():
    html = """
<!DOCTYPE NETSCAPE-Bookmark-file-1>
<H1>Bookmarks</H1>
<DL><p>
  <DT><H3 ADD_DATE="1" PERSONAL_TOOLBAR_FOLDER="true">Bookmarks bar</H3>
  <DL><p>
    <DT><A HREF="https://loose.test">Loose</A>
    <DT><H3>Dev</H3>
    <DL><p>
      <DT><H3>Python</H3>
      <DL><p>
        <DT><A HREF="https://python.test">Python</A>
      </DL><p>
    </DL><p>
    <DT><H3>News</H3>
    <DL><p>
      <DT><A HREF="https://news.test">News</A>
    </DL><p>
  </DL><p>
  <DT><H3>Other</H3>
  <DL><p>
    <DT><A HREF="https://other.test">Other</A>
  </DL><p>
</DL><p>
"""

    result = parse_bookmark_html(html)
    by_url = {row.url: row for row in result.bookmarks}

    assert result.root_folders == ["Dev", "News"]
    assert by_url["https://loose.test"].root_folder is None
    assert by_url["https://python.test"].root_folder == "Dev"
    assert by_url["https://python.test"].folder_path == ["Python"]
    assert by_url["https://news.test"].root_folder == "News"
    assert by_url["https://other.test"].root_folder == "Other"
    assert all(row.root_folder != "Bookmarks bar" for row in result.bookmarks)


def test_invalid_urls_are_dropped_and_only_titled_ones_reported():
    html = """
<DL><p>
  <DT><A HREF="javascript:alert(1)">Bookmarklet</A>
  <DT><A HREF="javascript:void(0)"></A>
  <DT><A>No href</A>
  <DT><A HREF="ftp://files.test">FTP</A>
  <DT><A HREF="https://ok.test">OK</A>
</DL><p>
"""

    result = parse_bookmark_html(html)

    assert [row.url for row in result.bookmarks] == ["https://ok.test"]
    assert result.errors == [
        'Skipped bookmark "Bookmarklet": invalid URL',
        'Skipped bookmark "No href": invalid URL',
        'Skipped bookmark "FTP": invalid URL',
    ]


def test_entities_are_decoded_before_truncation():
    long_name = "x" * 498
    html = f"""
<DL><p>
  <DT><H3>R&amp;D&nbsp;Team</H3>
  <DL><p>
    <DT><A HREF="https://a.test/?q=1&amp;r=2">&lt;Tom&gt; &quot;quoted&quot; &#39;s</A>
    <DT><A HREF="https://b.test">{long_name}&amp;&amp;&amp;</A>
  </DL><p>
</DL><p>
"""

    result = parse_bookmark_html(html)
    first, second = result.bookmarks

    assert first.root_folder == "R&D Team"
    assert first.title == "<Tom> \"quoted\" 's"
    assert first.url == "https://a.test/?q=1&r=2"
    assert second.title == long_name + "&&"
    assert len(second.title) == 500


def test_long_urls_are_truncated_without_error():
    url = "https://long.test/" + "a" * 3000
    result = parse_bookmark_html(f'<DL><p><DT><A HREF="{url}">Long</A></DL>')

    assert len(result.bookmarks[0].url) == 2048
    assert result.errors == []


def test_empty_title_falls_back_to_url():
    html = """
<DL><p>
  <DT><A HREF="https://example.com/no-title"></A>
</DL><p>
"""

    result = parse_bookmark_html(html)
    assert len(result.bookmarks) == 1
    assert result.bookmarks[0].title == "https://example.com/no-title"


def test_empty_folder_name_is_skipped_and_children_move_up():
    html = """
<DL><p>
  <DT><H3>Keep</H3>
  <DL><p>
    <DT><H3>   </H3>
    <DL><p>
      <DT><A HREF="https://orphan.test">Orphan</A>
    </DL><p>
    <DT><A HREF="https://after.test">After</A>
  </DL><p>
</DL><p>
"""

    result = parse_bookmark_html(html)
    by_url = {row.url: row for row in result.bookmarks}

    assert result.errors == [ERROR_EMPTY_FOLDER]
    assert by_url["https://orphan.test"].root_folder == "Keep"
    assert by_url["https://orphan.test"].folder_path == []
    # the nameless folder's closing tag pops its parent
    assert by_url["https://after.test"].root_folder is None


def test_missing_bookmark_list_returns_single_error():
    result = parse_bookmark_html("<html><body><p>nothing here</p></body></html>")

    assert result.bookmarks == []
    assert result.errors == [ERROR_NO_BOOKMARK_LIST]


def test_unbalanced_markup_is_parsed_best_effort():
    html = """
<DL><p>
  <DT><H3>Open</H3>
  <DL><p>
    <DT><A HREF="https://one.test">One</A>
    <DT><A HREF="https://two.test">Two</A>
</DL></DL></DL>
<DT><A HREF="https://three.test">Three</A>
"""

    result = parse_bookmark_html(html)

    assert [row.url for row in result.bookmarks][:2] == [
        "https://one.test",
        "https://two.test",
    ]
    assert result.bookmarks[0].root_folder == "Open"


def test_large_flat_folder_parses_in_linear_time():
    entries = "".join(
        f'<DT><A HREF="https://flat.test/{i}" ADD_DATE="1700000000">Item {i}</A>\n'
        for i in range(50_000)
    )
    html = f"<DL><p>\n<DT><H3>Big</H3>\n<DL><p>\n{entries}</DL><p>\n</DL><p>"

    started = time.perf_counter()
    result = parse_bookmark_html(html)
    elapsed = time.perf_counter() - started

    assert len(result.bookmarks) == 50_000
    assert result.bookmarks[-1].order == 49_999
    assert result.bookmarks[-1].root_folder == "Big"
    assert result.errors == []
    assert elapsed < 20


def test_anchor_without_end_tag_is_ignored():
    html = """
<DL><p>
  <DT><A HREF="https://a.test">A
  <DT><A HREF="https://b.test">B</A>
  <DT><H3>Folder
  <DT><A HREF="https://c.test">C</A>
</DL><p>
"""

    result = parse_bookmark_html(html)

    assert [(row.url, row.title) for row in result.bookmarks] == [
        ("https://b.test", "B"),
        ("https://c.test", "C"),
    ]
    assert result.bookmarks[1].root_folder is None


def test_href_entities_are_decoded_for_duplicate_matching():
    html = '<DL><p><DT><A HREF="https://a.test/?a=1&amp;b=2&#38;c=3">A</A></DL>'

    result = parse_bookmark_html(html)

    assert result.bookmarks[0].url == "https://a.test/?a=1&b=2&c=3"


def test_parse_is_deterministic():
    html = """
<DL><p>
  <DT><H3>A</H3>
  <DL><p>
    <DT><A HREF="bad">Bad</A>
    <DT><A HREF="https://x.test">X</A>
  </DL><p>
</DL><p>
"""

    assert parse_bookmark_html(html) == parse_bookmark_html(html)


def test_sanitize_url_requires_http_scheme():
    assert sanitize_url("  https://ok.test  ") == "https://ok.test"
    assert sanitize_url("HTTP://upper.test") == ""
    assert sanitize_url("mailto:a@b.test") == ""
    assert sanitize_url(None) == ""
