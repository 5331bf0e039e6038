from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import func, select

from cardnav.extensions import db
from cardnav.models import Card, Menu, SubMenu
from cardnav.services.import_plan import ImportSnapshot


@dataclass
class NewGroup:
    name: str
    order: int


@dataclass
class NewCard:
    menu_id: int
    group_id: int | None
    title: str
    url: str
    order: int


class ImportStore:
    """Destination reads and writes used by the import pipeline."""

    def list_menus(self) -> list[tuple[int, str]]:
        rows = db.session.query(Menu.id, Menu.name).order_by(Menu.order, Menu.id).all()
        return [(row.id, row.name) for row in rows]

    def list_groups(self) -> list[tuple[int, int, str]]:
        rows = (
            db.session.query(SubMenu.id, SubMenu.parent_id, SubMenu.name)
            .order_by(SubMenu.order, SubMenu.id)
            .all()
        )
        return [(row.id, row.parent_id, row.name) for row in rows]

    def list_card_urls(
        self, menu_id: int | None = None
    ) -> list[tuple[int | None, int | None, str]]:
        effective_menu_id = func.coalesce(Card.menu_id, SubMenu.parent_id)
        query = db.session.query(effective_menu_id, Card.sub_menu_id, Card.url).outerjoin(
            SubMenu, Card.sub_menu_id == SubMenu.id
        )
        if menu_id is not None:
            query = query.filter(effective_menu_id == menu_id)
        return [(row[0], row[1], row[2]) for row in query.all()]

    def load_snapshot(self, menu_id: int | None = None) -> ImportSnapshot:
        menus: dict[str, int] = {}
        for row_id, name in self.list_menus():
            menus.setdefault(name, row_id)

        groups: dict[int, dict[str, int]] = {}
        for row_id, parent_id, name in self.list_groups():
            groups.setdefault(parent_id, {}).setdefault(name, row_id)

        urls: dict[tuple[int, int | None], set[str]] = {}
        for card_menu_id, group_id, url in self.list_card_urls(menu_id):
            if card_menu_id is None:
                continue
            urls.setdefault((card_menu_id, group_id), set()).add(url)

        return ImportSnapshot(
            menus=menus,
            groups=groups,
            urls={key: frozenset(value) for key, value in urls.items()},
        )

    def menu_name(self, menu_id: int) -> str | None:
        menu = db.session.get(Menu, menu_id)
        return menu.name if menu else None

    def groups_for_menu(self, menu_id: int) -> dict[str, int]:
        rows = (
            db.session.query(SubMenu.id, SubMenu.name)
            .filter(SubMenu.parent_id == menu_id)
            .order_by(SubMenu.id)
            .all()
        )
        groups: dict[str, int] = {}
        for row in rows:
            groups.setdefault(row.name, row.id)
        return groups

    def create_menu(self, name: str, order: int) -> int:
        return self.execute_batch([Menu(name=name, order=order)])[0]

    def create_groups(self, menu_id: int, rows: Sequence[NewGroup]) -> list[int]:
        return self.execute_batch(
            [SubMenu(parent_id=menu_id, name=row.name, order=row.order) for row in rows]
        )

    def insert_cards(self, rows: Sequence[NewCard]) -> list[int]:
        return self.execute_batch(
            [
                Card(
                    menu_id=row.menu_id,
                    sub_menu_id=row.group_id,
                    title=row.title,
                    url=row.url,
                    order=row.order,
                )
                for row in rows
            ]
        )

    def clear_menus(self, menu_ids: Iterable[int]) -> tuple[int, int]:
        ids = list(dict.fromkeys(menu_ids))
        if not ids:
            return 0, 0

        try:
            group_ids = select(SubMenu.id).where(SubMenu.parent_id.in_(ids))
            cards_deleted = (
                db.session.query(Card)
                .filter(
                    (Card.menu_id.in_(ids)) | (Card.sub_menu_id.in_(group_ids))
                )
                .delete(synchronize_session=False)
            )
            groups_deleted = (
                db.session.query(SubMenu)
                .filter(SubMenu.parent_id.in_(ids))
                .delete(synchronize_session=False)
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return cards_deleted, groups_deleted

    def execute_batch(self, records: Sequence[db.Model]) -> list[int]:
        if not records:
            return []
        try:
            db.session.add_all(records)
            db.session.flush()
            ids = [record.id for record in records]
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return ids
