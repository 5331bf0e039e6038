from datetime import datetime, timezone

from cardnav.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Menu(db.Model):
    __tablename__ = "menus"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(500), nullable=False, index=True)
    order = db.Column("order", db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)


class SubMenu(db.Model):
    __tablename__ = "sub_menus"

    id = db.Column(db.Integer, primary_key=True)
    parent_id = db.Column(
        db.Integer, db.ForeignKey("menus.id"), nullable=False, index=True
    )
    name = db.Column(db.String(500), nullable=False)
    order = db.Column("order", db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.Index("ix_sub_menu_parent_name", "parent_id", "name"),)


class Card(db.Model):
    __tablename__ = "cards"

    id = db.Column(db.Integer, primary_key=True)
    menu_id = db.Column(db.Integer, db.ForeignKey("menus.id"), nullable=True, index=True)
    sub_menu_id = db.Column(
        db.Integer, db.ForeignKey("sub_menus.id"), nullable=True, index=True
    )
    title = db.Column(db.String(500), nullable=False, default="")
    url = db.Column(db.String(2048), nullable=False)
    logo_url = db.Column(db.Text, nullable=True)
    custom_logo_path = db.Column(db.Text, nullable=True)
    desc = db.Column(db.Text, nullable=True)
    order = db.Column("order", db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.Index("ix_card_menu_sub_menu", "menu_id", "sub_menu_id"),)
