from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cardnav.services.bookmark_import import (
    MAX_FILE_SIZE,
    BookmarkRecord,
    parse_bookmark_html,
)
from cardnav.services.import_executor import (
    DEFAULT_BATCH_SIZE,
    ImportResult,
    execute_import_plan,
)
from cardnav.services.import_plan import (
    ACTION_CREATE,
    ACTION_REUSE,
    DEFAULT_FALLBACK_MENU,
    TARGET_AUTO,
    TARGET_MENU,
    ImportPlan,
    ImportSnapshot,
    PlanFormatError,
    generate_import_plan,
    plan_from_dict,
)
from cardnav.services.store import ImportStore

LOGGER = logging.getLogger(__name__)

MODE_MERGE = "merge"
MODE_REPLACE = "replace"
IMPORT_MODES = {MODE_MERGE, MODE_REPLACE}

DEFAULT_MIN_BYTES = 10
DEFAULT_SAMPLE_SIZE = 20
DEFAULT_MAX_ERRORS = 50


class ImportRequestError(ValueError):
    pass


@dataclass
class ImportTarget:
    type: str = TARGET_AUTO
    menu_id: int | None = None

    @property
    def label(self) -> str:
        if self.type == TARGET_MENU:
            return f"{TARGET_MENU}:{self.menu_id}"
        return TARGET_AUTO


@dataclass
class ImportPreview:
    plan: ImportPlan
    summary: dict
    mode: str
    target: ImportTarget
    replace_menu_ids: list[int] = field(default_factory=list)


def parse_mode(raw: str | None) -> str:
    mode = (raw or "").strip().lower() or MODE_MERGE
    if mode not in IMPORT_MODES:
        raise ImportRequestError(f"invalid import mode: {raw}")
    return mode


def _parse_menu_id(raw) -> int:
    if isinstance(raw, bool):
        raise ImportRequestError("invalid target menu id")
    try:
        menu_id = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ImportRequestError("invalid target menu id") from None
    if menu_id <= 0:
        raise ImportRequestError("invalid target menu id")
    return menu_id


def parse_target(raw: str | None) -> ImportTarget:
    value = (raw or "").strip() or TARGET_AUTO
    if value == TARGET_AUTO:
        return ImportTarget()

    prefix, _, menu_id = value.partition(":")
    if prefix != TARGET_MENU or not menu_id:
        raise ImportRequestError(f"invalid import target: {raw}")
    return ImportTarget(type=TARGET_MENU, menu_id=_parse_menu_id(menu_id))


def read_upload(
    data: bytes | None,
    max_bytes: int = MAX_FILE_SIZE,
    min_bytes: int = DEFAULT_MIN_BYTES,
) -> str:
    if data is None:
        raise ImportRequestError("file is required")
    if len(data) > max_bytes:
        raise ImportRequestError(
            f"file is too large (limit {max_bytes // (1024 * 1024)} MB)"
        )

    html = data.decode("utf-8", errors="ignore")
    if len(html.strip()) < min_bytes:
        raise ImportRequestError("file is empty or invalid")
    return html


def _target_menu_name(store: ImportStore, menu_id: int | None) -> str:
    name = store.menu_name(menu_id) if menu_id is not None else None
    if name is None:
        raise ImportRequestError("target menu not found")
    return name


def _replace_scope_for_bookmarks(
    bookmarks: list[BookmarkRecord],
    target: ImportTarget,
    snapshot: ImportSnapshot,
    fallback_menu: str,
) -> list[int]:
    if target.type == TARGET_MENU:
        return [target.menu_id]

    menu_ids: list[int] = []
    for bookmark in bookmarks:
        menu_id = snapshot.menus.get(bookmark.root_folder or fallback_menu)
        if menu_id is not None and menu_id not in menu_ids:
            menu_ids.append(menu_id)
    return menu_ids


def _replace_scope_for_plan(
    plan: ImportPlan, target_type: str, target_menu_id: int | None
) -> list[int]:
    if target_type == TARGET_MENU:
        return [target_menu_id]
    return list(
        dict.fromkeys(
            menu.existing_id
            for menu in plan.menus
            if menu.action == ACTION_REUSE and menu.existing_id is not None
        )
    )


def summarize_plan(
    plan: ImportPlan,
    parse_errors: list[str],
    total_bookmarks: int,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    max_errors: int = DEFAULT_MAX_ERRORS,
) -> dict:
    menus: dict[str, dict] = {}
    for menu in plan.menus:
        menus[menu.key] = {
            "name": menu.name,
            "action": menu.action,
            "cards": 0,
            "skipped": 0,
            "groups": [],
        }

    groups: dict[str, dict] = {}
    for group in plan.groups:
        entry = {"name": group.name, "action": group.action, "cards": 0, "skipped": 0}
        groups[group.key] = entry
        if group.menu_key in menus:
            menus[group.menu_key]["groups"].append(entry)

    for card in plan.cards:
        counter = "cards" if card.action == ACTION_CREATE else "skipped"
        if card.menu_key in menus:
            menus[card.menu_key][counter] += 1
        if card.group_key in groups:
            groups[card.group_key][counter] += 1

    sample = []
    for card in plan.cards[: max(0, sample_size)]:
        menu = menus.get(card.menu_key)
        group = groups.get(card.group_key) if card.group_key else None
        sample.append(
            {
                "title": card.title,
                "url": card.url,
                "menu": menu["name"] if menu else None,
                "group": group["name"] if group else None,
                "action": card.action,
            }
        )

    return {
        "totalBookmarks": total_bookmarks,
        "stats": plan.stats.as_dict(),
        "menus": list(menus.values()),
        "sample": sample,
        "errors": parse_errors[: max(0, max_errors)],
        "errorCount": len(parse_errors),
    }


def build_preview(
    html: str,
    mode: str,
    target: ImportTarget,
    store: ImportStore,
    fallback_menu: str = DEFAULT_FALLBACK_MENU,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    max_errors: int = DEFAULT_MAX_ERRORS,
) -> ImportPreview:
    target_menu_name = None
    if target.type == TARGET_MENU:
        target_menu_name = _target_menu_name(store, target.menu_id)

    parsed = parse_bookmark_html(html)
    if not parsed.bookmarks:
        raise ImportRequestError("no valid bookmarks found in file")

    snapshot = store.load_snapshot(
        target.menu_id if target.type == TARGET_MENU else None
    )
    replace_menu_ids: list[int] = []
    if mode == MODE_REPLACE:
        replace_menu_ids = _replace_scope_for_bookmarks(
            parsed.bookmarks, target, snapshot, fallback_menu
        )
        snapshot = snapshot.without_urls_under(replace_menu_ids)

    plan = generate_import_plan(
        parsed.bookmarks,
        parsed.root_folders,
        target.type,
        snapshot.menus,
        snapshot.groups,
        snapshot.urls,
        target_menu_id=target.menu_id,
        target_menu_name=target_menu_name,
        fallback_menu=fallback_menu,
    )
    summary = summarize_plan(
        plan, parsed.errors, len(parsed.bookmarks), sample_size, max_errors
    )
    LOGGER.info(
        "Planned import (%s, %s): %d bookmarks, %d cards to create, %d to skip",
        mode,
        target.label,
        len(parsed.bookmarks),
        summary["stats"]["cardsToCreate"],
        summary["stats"]["cardsToSkip"],
    )
    return ImportPreview(
        plan=plan,
        summary=summary,
        mode=mode,
        target=target,
        replace_menu_ids=replace_menu_ids,
    )


def load_plan(payload) -> ImportPlan:
    try:
        return plan_from_dict(payload)
    except PlanFormatError as exc:
        raise ImportRequestError(f"invalid plan: {exc}") from exc


def apply_plan(
    plan: ImportPlan,
    mode: str,
    target_type: str | None,
    target_menu_id,
    store: ImportStore,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ImportResult:
    target_type = (target_type or TARGET_AUTO).strip()
    menu_id = None
    if target_type == TARGET_MENU:
        menu_id = _parse_menu_id(target_menu_id)
        _target_menu_name(store, menu_id)
    elif target_type != TARGET_AUTO:
        raise ImportRequestError(f"invalid import target: {target_type}")

    replace_menu_ids: list[int] = []
    if mode == MODE_REPLACE:
        replace_menu_ids = _replace_scope_for_plan(plan, target_type, menu_id)

    return execute_import_plan(
        plan, store, replace_menu_ids=replace_menu_ids, batch_size=batch_size
    )
