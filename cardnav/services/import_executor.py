from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from cardnav.services.import_plan import (
    ACTION_CREATE,
    ACTION_REUSE,
    ACTION_SKIP,
    CardPlan,
    GroupPlan,
    ImportPlan,
)
from cardnav.services.store import ImportStore, NewCard, NewGroup

LOGGER = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class ImportResult:
    menus_created: int = 0
    menus_reused: int = 0
    groups_created: int = 0
    groups_reused: int = 0
    cards_created: int = 0
    cards_skipped: int = 0
    cards_deleted: int = 0
    groups_deleted: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self):
        return {
            "menusCreated": self.menus_created,
            "menusReused": self.menus_reused,
            "groupsCreated": self.groups_created,
            "groupsReused": self.groups_reused,
            "cardsCreated": self.cards_created,
            "cardsSkipped": self.cards_skipped,
            "cardsDeleted": self.cards_deleted,
            "groupsDeleted": self.groups_deleted,
        }


def _chunks(rows: list, size: int):
    for i in range(0, len(rows), size):
        yield rows[i : i + size]


def _resolve_menus(
    plan: ImportPlan, store: ImportStore, result: ImportResult
) -> dict[str, int]:
    menu_ids: dict[str, int] = {}
    for menu in plan.menus:
        if menu.action == ACTION_REUSE and menu.existing_id is not None:
            menu_ids[menu.key] = menu.existing_id
            result.menus_reused += 1
            continue
        menu_ids[menu.key] = store.create_menu(menu.name, menu.order)
        result.menus_created += 1
    return menu_ids


def _resolve_groups(
    plan: ImportPlan,
    store: ImportStore,
    menu_ids: dict[str, int],
    result: ImportResult,
) -> dict[str, int]:
    by_menu: dict[str, list[GroupPlan]] = {}
    for group in plan.groups:
        by_menu.setdefault(group.menu_key, []).append(group)

    group_ids: dict[str, int] = {}
    for menu_key, groups in by_menu.items():
        menu_id = menu_ids.get(menu_key)
        if menu_id is None:
            continue

        existing = store.groups_for_menu(menu_id)
        missing: dict[str, list[GroupPlan]] = {}
        for group in groups:
            if group.name in existing:
                group_ids[group.key] = existing[group.name]
                result.groups_reused += 1
            else:
                missing.setdefault(group.name, []).append(group)

        names = list(missing)
        created = store.create_groups(
            menu_id,
            [NewGroup(name=name, order=missing[name][0].order) for name in names],
        )
        for name, group_id in zip(names, created, strict=True):
            for group in missing[name]:
                group_ids[group.key] = group_id
            result.groups_created += 1
    return group_ids


def _resolve_card(
    card: CardPlan,
    menu_ids: dict[str, int],
    group_ids: dict[str, int],
    result: ImportResult,
) -> NewCard | None:
    menu_id = menu_ids.get(card.menu_key)
    if menu_id is None:
        result.errors.append(
            f'Card "{card.title}" skipped: unknown menu key {card.menu_key}'
        )
        return None

    group_id = None
    if card.group_key is not None:
        group_id = group_ids.get(card.group_key)
        if group_id is None:
            result.errors.append(
                f'Card "{card.title}" skipped: unknown group key {card.group_key}'
            )
            return None

    return NewCard(
        menu_id=menu_id,
        group_id=group_id,
        title=card.title,
        url=card.url,
        order=card.order,
    )


def execute_import_plan(
    plan: ImportPlan,
    store: ImportStore,
    replace_menu_ids: Iterable[int] = (),
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ImportResult:
    """Write a previously computed plan to the store.

    Menus are resolved before groups and groups before cards; every stage
    commits on its own, so a failure part way through leaves the earlier
    stages in place. Re-running the same preview and apply converges because
    the plan already encodes the reuse and skip decisions.
    """
    result = ImportResult()
    batch_size = max(1, batch_size)

    replace_ids = list(replace_menu_ids)
    if replace_ids:
        result.cards_deleted, result.groups_deleted = store.clear_menus(replace_ids)

    menu_ids = _resolve_menus(plan, store, result)
    group_ids = _resolve_groups(plan, store, menu_ids, result)

    pending: list[NewCard] = []
    for card in plan.cards:
        if card.action == ACTION_SKIP:
            result.cards_skipped += 1
            continue
        if card.action != ACTION_CREATE:
            continue
        row = _resolve_card(card, menu_ids, group_ids, result)
        if row is not None:
            pending.append(row)

    for batch in _chunks(pending, batch_size):
        store.insert_cards(batch)
        result.cards_created += len(batch)

    LOGGER.info(
        "Applied import plan: %d menus, %d groups, %d cards created (%d errors)",
        result.menus_created,
        result.groups_created,
        result.cards_created,
        len(result.errors),
    )
    return result
