from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from cardnav.services.bookmark_import import BookmarkRecord

TARGET_AUTO = "auto"
TARGET_MENU = "menu"
TARGET_TYPES = {TARGET_AUTO, TARGET_MENU}

ACTION_CREATE = "create"
ACTION_REUSE = "reuse"
ACTION_SKIP = "skip"

DEFAULT_FALLBACK_MENU = "Home"
PATH_SEPARATOR = " / "

UrlBucketKey = tuple[int, int | None]


class PlanFormatError(ValueError):
    pass


@dataclass(frozen=True)
class ImportSnapshot:
    """Read-only view of destination state taken before planning.

    ``menus`` maps menu name to id, ``groups`` maps a menu id to its
    group names and ids, and ``urls`` maps ``(menu_id, group_id)`` to the set
    of card URLs already stored there (``group_id`` is ``None`` for cards
    attached directly to the menu).
    """

    menus: Mapping[str, int] = field(default_factory=dict)
    groups: Mapping[int, Mapping[str, int]] = field(default_factory=dict)
    urls: Mapping[UrlBucketKey, frozenset[str]] = field(default_factory=dict)

    def without_urls_under(self, menu_ids: Iterable[int]) -> ImportSnapshot:
        cleared = set(menu_ids)
        urls = {key: value for key, value in self.urls.items() if key[0] not in cleared}
        return ImportSnapshot(menus=self.menus, groups=self.groups, urls=urls)


@dataclass
class MenuPlan:
    key: str
    name: str
    action: str
    existing_id: int | None
    order: int

    def as_dict(self):
        return {
            "key": self.key,
            "name": self.name,
            "action": self.action,
            "existingId": self.existing_id,
            "order": self.order,
        }


@dataclass
class GroupPlan:
    key: str
    menu_key: str
    name: str
    action: str
    existing_id: int | None
    order: int

    def as_dict(self):
        return {
            "key": self.key,
            "menuKey": self.menu_key,
            "name": self.name,
            "action": self.action,
            "existingId": self.existing_id,
            "order": self.order,
        }


@dataclass
class CardPlan:
    menu_key: str
    group_key: str | None
    title: str
    url: str
    action: str
    order: int

    def as_dict(self):
        return {
            "menuKey": self.menu_key,
            "groupKey": self.group_key,
            "title": self.title,
            "url": self.url,
            "action": self.action,
            "order": self.order,
        }


@dataclass
class PlanStats:
    menus_to_create: int = 0
    menus_to_reuse: int = 0
    groups_to_create: int = 0
    groups_to_reuse: int = 0
    cards_to_create: int = 0
    cards_to_skip: int = 0

    def as_dict(self):
        return {
            "menusToCreate": self.menus_to_create,
            "menusToReuse": self.menus_to_reuse,
            "groupsToCreate": self.groups_to_create,
            "groupsToReuse": self.groups_to_reuse,
            "cardsToCreate": self.cards_to_create,
            "cardsToSkip": self.cards_to_skip,
        }


@dataclass
class ImportPlan:
    menus: list[MenuPlan] = field(default_factory=list)
    groups: list[GroupPlan] = field(default_factory=list)
    cards: list[CardPlan] = field(default_factory=list)

    @property
    def stats(self) -> PlanStats:
        return PlanStats(
            menus_to_create=sum(1 for m in self.menus if m.action == ACTION_CREATE),
            menus_to_reuse=sum(1 for m in self.menus if m.action == ACTION_REUSE),
            groups_to_create=sum(1 for g in self.groups if g.action == ACTION_CREATE),
            groups_to_reuse=sum(1 for g in self.groups if g.action == ACTION_REUSE),
            cards_to_create=sum(1 for c in self.cards if c.action == ACTION_CREATE),
            cards_to_skip=sum(1 for c in self.cards if c.action == ACTION_SKIP),
        )

    def as_dict(self):
        return {
            "menus": [menu.as_dict() for menu in self.menus],
            "groups": [group.as_dict() for group in self.groups],
            "cards": [card.as_dict() for card in self.cards],
            "stats": self.stats.as_dict(),
        }


def menu_key_for(name: str) -> str:
    return f"menu:{name}"


def group_key_for(menu_key: str, name: str) -> str:
    return f"{menu_key}||group:{name}"


class _PlanBuilder:
    def __init__(
        self,
        existing_menus: Mapping[str, int],
        existing_groups: Mapping[int, Mapping[str, int]],
        existing_urls: Mapping[UrlBucketKey, Iterable[str]],
    ) -> None:
        self.plan = ImportPlan()
        self._existing_menus = existing_menus
        self._existing_groups = existing_groups
        self._existing_urls = existing_urls
        self._menus: dict[str, MenuPlan] = {}
        self._groups: dict[str, GroupPlan] = {}
        self._group_orders: dict[str, int] = {}
        self._card_orders: dict[str, int] = {}
        self._planned_urls: dict[tuple[str, str | None], set[str]] = {}

    def add_menu(self, name: str, existing_id: int | None) -> str:
        key = menu_key_for(name)
        if key in self._menus:
            return key

        menu = MenuPlan(
            key=key,
            name=name,
            action=ACTION_REUSE if existing_id is not None else ACTION_CREATE,
            existing_id=existing_id,
            order=len(self.plan.menus),
        )
        self.plan.menus.append(menu)
        self._menus[key] = menu
        self._group_orders[key] = 0
        return key

    def ensure_menu(self, name: str) -> str:
        return self.add_menu(name, self._existing_menus.get(name))

    def ensure_group(self, menu_key: str, name: str) -> str:
        key = group_key_for(menu_key, name)
        if key in self._groups:
            return key

        menu_id = self._menus[menu_key].existing_id
        existing_id = None
        if menu_id is not None:
            existing_id = self._existing_groups.get(menu_id, {}).get(name)

        group = GroupPlan(
            key=key,
            menu_key=menu_key,
            name=name,
            action=ACTION_REUSE if existing_id is not None else ACTION_CREATE,
            existing_id=existing_id,
            order=self._group_orders[menu_key],
        )
        self._group_orders[menu_key] += 1
        self.plan.groups.append(group)
        self._groups[key] = group
        return key

    def add_card(
        self, menu_key: str, group_key: str | None, title: str, url: str
    ) -> None:
        planned = self._planned_urls.setdefault((menu_key, group_key), set())
        scope = group_key or menu_key
        order = self._card_orders.get(scope, 0)
        action = ACTION_CREATE
        if url in planned:
            # repeats within the upload do not take an order slot
            action = ACTION_SKIP
        else:
            if url in self._existing_bucket(menu_key, group_key):
                action = ACTION_SKIP
            self._card_orders[scope] = order + 1
        planned.add(url)
        self.plan.cards.append(
            CardPlan(
                menu_key=menu_key,
                group_key=group_key,
                title=title,
                url=url,
                action=action,
                order=order,
            )
        )

    def _existing_bucket(self, menu_key: str, group_key: str | None):
        menu_id = self._menus[menu_key].existing_id
        if menu_id is None:
            return ()
        group_id = None
        if group_key is not None:
            group_id = self._groups[group_key].existing_id
            if group_id is None:
                return ()
        return self._existing_urls.get((menu_id, group_id), ())


def generate_import_plan(
    bookmarks: Iterable[BookmarkRecord],
    root_folders: Iterable[str],
    target_type: str,
    existing_menus: Mapping[str, int],
    existing_groups: Mapping[int, Mapping[str, int]],
    existing_urls: Mapping[UrlBucketKey, Iterable[str]],
    target_menu_id: int | None = None,
    target_menu_name: str | None = None,
    fallback_menu: str = DEFAULT_FALLBACK_MENU,
) -> ImportPlan:
    """Decide which menus, groups and cards an import creates, reuses or skips.

    In ``auto`` mode every root folder becomes a menu and the remaining
    folder path becomes a group inside it; loose bookmarks land in
    ``fallback_menu``. In ``menu`` mode everything goes into the existing
    target menu and the full folder path, root folder included, names the
    group.

    ``root_folders`` is the parser's list of toolbar-level folders. Menus are
    derived from each bookmark's own ``root_folder`` so folders outside the
    toolbar are planned too.

    Inputs are assumed valid: the caller checks that ``target_menu_id``
    exists before planning in ``menu`` mode.
    """
    builder = _PlanBuilder(existing_menus, existing_groups, existing_urls)

    if target_type == TARGET_MENU:
        menu_key = builder.add_menu(target_menu_name or "", target_menu_id)
        for bookmark in bookmarks:
            path = list(bookmark.folder_path)
            if bookmark.root_folder is not None:
                path.insert(0, bookmark.root_folder)
            group_key = None
            if path:
                group_key = builder.ensure_group(menu_key, PATH_SEPARATOR.join(path))
            builder.add_card(menu_key, group_key, bookmark.title, bookmark.url)
        return builder.plan

    for bookmark in bookmarks:
        if bookmark.root_folder is None:
            menu_key = builder.ensure_menu(fallback_menu)
            builder.add_card(menu_key, None, bookmark.title, bookmark.url)
            continue

        menu_key = builder.ensure_menu(bookmark.root_folder)
        group_key = None
        if bookmark.folder_path:
            group_key = builder.ensure_group(
                menu_key, PATH_SEPARATOR.join(bookmark.folder_path)
            )
        builder.add_card(menu_key, group_key, bookmark.title, bookmark.url)

    return builder.plan


def _require(payload, name: str, kind, optional: bool = False):
    if not isinstance(payload, dict):
        raise PlanFormatError("plan entries must be objects")
    value = payload.get(name)
    if value is None and optional:
        return None
    if kind is int and isinstance(value, bool):
        raise PlanFormatError(f"plan field {name!r} must be int")
    if not isinstance(value, kind):
        raise PlanFormatError(f"plan field {name!r} must be {kind.__name__}")
    return value


def _require_action(payload, allowed: set[str]) -> str:
    action = _require(payload, "action", str)
    if action not in allowed:
        raise PlanFormatError(f"unknown plan action {action!r}")
    return action


def _require_list(payload: dict, name: str) -> list:
    rows = payload.get(name) or []
    if not isinstance(rows, list):
        raise PlanFormatError(f"plan field {name!r} must be a list")
    return rows


def plan_from_dict(payload) -> ImportPlan:
    if not isinstance(payload, dict):
        raise PlanFormatError("plan must be an object")

    menus = [
        MenuPlan(
            key=_require(row, "key", str),
            name=_require(row, "name", str),
            action=_require_action(row, {ACTION_CREATE, ACTION_REUSE}),
            existing_id=_require(row, "existingId", int, optional=True),
            order=_require(row, "order", int),
        )
        for row in _require_list(payload, "menus")
    ]
    groups = [
        GroupPlan(
            key=_require(row, "key", str),
            menu_key=_require(row, "menuKey", str),
            name=_require(row, "name", str),
            action=_require_action(row, {ACTION_CREATE, ACTION_REUSE}),
            existing_id=_require(row, "existingId", int, optional=True),
            order=_require(row, "order", int),
        )
        for row in _require_list(payload, "groups")
    ]
    cards = [
        CardPlan(
            menu_key=_require(row, "menuKey", str),
            group_key=_require(row, "groupKey", str, optional=True),
            title=_require(row, "title", str),
            url=_require(row, "url", str),
            action=_require_action(row, {ACTION_CREATE, ACTION_SKIP}),
            order=_require(row, "order", int),
        )
        for row in _require_list(payload, "cards")
    ]

    for menu in menus:
        if menu.action == ACTION_REUSE and menu.existing_id is None:
            raise PlanFormatError(f"menu {menu.name!r} is marked reuse without an id")

    return ImportPlan(menus=menus, groups=groups, cards=cards)
