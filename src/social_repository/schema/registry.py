# src/social_repository/schema/registry.py
"""
Static description of the relational schema.

The registry lists every table (columns, types, keys, enum type) and every
read-only view (column names plus the SQL that creates it). It is consumed in
two places: the provisioner creates whatever is missing at process start, and
the SQL compiler validates relation and column names before building text.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from social_repository.base.exceptions import InvalidField
from social_repository.schema import views as view_sql

ReferentialAction = Literal["RESTRICT", "CASCADE", "NO ACTION", "SET NULL"]


@dataclass(frozen=True)
class ForeignKey:
    table: str
    column: str
    on_delete: Optional[ReferentialAction] = None
    on_update: Optional[ReferentialAction] = None


@dataclass(frozen=True)
class Column:
    type: str
    length: Optional[int] = None
    not_null: bool = False
    default: Optional[str] = None
    primary_key: bool = False
    unique: bool = False
    foreign_key: Optional[ForeignKey] = None


@dataclass(frozen=True)
class EnumType:
    name: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class Table:
    name: str
    columns: Dict[str, Column]
    enum_type: Optional[EnumType] = None


@dataclass(frozen=True)
class View:
    name: str
    columns: Tuple[str, ...]
    build: Callable[[str], str]

    def definition(self, schema: str) -> str:
        return self.build(schema)


@dataclass(frozen=True)
class Constraint:
    """A primary key ('p'), unique key ('u') or foreign key ('f')."""

    name: str
    table: str
    kind: Literal["p", "u", "f"]
    columns: Tuple[str, ...]
    references: Optional[ForeignKey] = None


def _cascade(table: str, column: str) -> ForeignKey:
    return ForeignKey(table, column, on_delete="CASCADE", on_update="CASCADE")


def _set_null(table: str, column: str) -> ForeignKey:
    return ForeignKey(table, column, on_delete="SET NULL", on_update="CASCADE")


_TIMESTAMP = Column("timestamp", default="current_timestamp", not_null=True)
_USER_FK = Column("varchar", 32, not_null=True, foreign_key=_cascade("users", "id"))


class SchemaRegistry:
    """Lookup over table and view definitions."""

    def __init__(self, tables: Iterable[Table], views: Iterable[View] = ()):
        self.tables: Dict[str, Table] = {t.name: t for t in tables}
        self.views: Dict[str, View] = {v.name: v for v in views}

    # --- Lookup ---
    def has_relation(self, name: str) -> bool:
        return name in self.tables or name in self.views

    def columns(self, name: str) -> Tuple[str, ...]:
        if name in self.tables:
            return tuple(self.tables[name].columns)
        if name in self.views:
            return self.views[name].columns
        raise InvalidField(f"Unknown table or view '{name}'.")

    def validate_relation(self, name: str) -> None:
        if not self.has_relation(name):
            raise InvalidField(f"Unknown table or view '{name}'.")

    def validate_fields(self, name: str, fields: Sequence[str]) -> None:
        known = set(self.columns(name))
        unknown = [f for f in fields if f not in known]
        if unknown:
            raise InvalidField(
                f"Unknown field(s) {', '.join(repr(f) for f in unknown)} "
                f"for '{name}'."
            )

    def primary_key(self, table: str) -> Tuple[str, ...]:
        return tuple(
            name for name, col in self.tables[table].columns.items() if col.primary_key
        )

    # --- Provisioning helpers ---
    def enum_types(self) -> List[EnumType]:
        return [t.enum_type for t in self.tables.values() if t.enum_type is not None]

    def constraints(self) -> List[Constraint]:
        """Primary and unique keys first, then foreign keys (in table order)."""
        keys: List[Constraint] = []
        foreign: List[Constraint] = []
        for table in self.tables.values():
            pkey = tuple(n for n, c in table.columns.items() if c.primary_key)
            ukey = tuple(n for n, c in table.columns.items() if c.unique)
            if pkey:
                keys.append(Constraint(f"{table.name}_pkey", table.name, "p", pkey))
            if ukey:
                keys.append(Constraint(f"{table.name}_ukey", table.name, "u", ukey))
            for name, col in table.columns.items():
                fk = col.foreign_key
                if fk is None:
                    continue
                foreign.append(
                    Constraint(
                        f"{table.name}_{fk.table}_{name}_{fk.column}_fkey",
                        table.name,
                        "f",
                        (name,),
                        references=fk,
                    )
                )
        return keys + foreign


TABLES: Tuple[Table, ...] = (
    Table("users", {
        "id": Column("varchar", 32, not_null=True, primary_key=True),
        "password": Column("varchar", 128, not_null=True),
        "nickname": Column("varchar", 32, not_null=True),
        "image": Column("varchar", 128, not_null=True),
        "banner": Column("varchar", 128),
        "desc": Column("varchar", 512),
        "location": Column("varchar", 128),
        "birth": Column("jsonb"),
        "verified": Column("jsonb"),
        "refer": Column("varchar", 256),
        "regist": _TIMESTAMP,
    }),
    Table("follow", {
        "id": Column("serial4", not_null=True, primary_key=True),
        "source": Column("varchar", 32, not_null=True, unique=True,
                         foreign_key=_cascade("users", "id")),
        "target": Column("varchar", 32, not_null=True, unique=True,
                         foreign_key=_cascade("users", "id")),
        "createat": _TIMESTAMP,
    }),
    Table("post", {
        "postid": Column("serial4", not_null=True, primary_key=True),
        "userid": _USER_FK,
        "content": Column("varchar", 512, not_null=True),
        "images": Column("jsonb", not_null=True),
        "createat": _TIMESTAMP,
        "parentid": Column("int4", foreign_key=_set_null("post", "postid")),
        "originalid": Column("int4", foreign_key=_set_null("post", "postid")),
        "quote": Column("bool", default="false", not_null=True),
        "pinned": Column("bool", default="false", not_null=True),
        "scope": Column("post_scope", default="every", not_null=True),
    }, EnumType("post_scope", ("every", "follow", "verified", "only"))),
    Table("reactions", {
        "id": Column("serial4", not_null=True, primary_key=True),
        "type": Column("reactions_type", not_null=True),
        "postid": Column("int4", not_null=True, foreign_key=_cascade("post", "postid")),
        "commentid": Column("int4", foreign_key=_cascade("post", "postid")),
        "userid": _USER_FK,
        "quote": Column("bool", default="false", not_null=True),
    }, EnumType("reactions_type", ("Heart", "Repost", "Comment", "Bookmark"))),
    Table("views", {
        "postid": Column("int4", not_null=True, primary_key=True,
                         foreign_key=_cascade("post", "postid")),
        "impressions": Column("int4", default="0", not_null=True),
        "engagements": Column("int4", default="0", not_null=True),
        "detailexpands": Column("int4", default="0", not_null=True),
        "newfollowers": Column("int4", default="0", not_null=True),
        "profilevisit": Column("int4", default="0", not_null=True),
    }),
    Table("hashtags", {
        "id": Column("serial4", not_null=True),
        "type": Column("hashtags_type", default="tag", not_null=True, primary_key=True),
        "title": Column("varchar", 32, not_null=True, primary_key=True),
        "count": Column("int4", default="1", not_null=True),
        "weight": Column("float4", default="1", not_null=True),
    }, EnumType("hashtags_type", ("tag", "word"))),
    Table("lists", {
        "id": Column("serial4", not_null=True, primary_key=True),
        "userid": _USER_FK,
        "name": Column("varchar", 64, not_null=True),
        "description": Column("varchar", 512),
        "banner": Column("varchar", 256, not_null=True),
        "thumbnail": Column("varchar", 256, not_null=True),
        "make": Column("lists_make", default="public", not_null=True),
        "createat": _TIMESTAMP,
    }, EnumType("lists_make", ("private", "public"))),
    Table("listsdetail", {
        "id": Column("serial4", not_null=True, primary_key=True),
        "listid": Column("int4", not_null=True, foreign_key=_cascade("lists", "id")),
        "type": Column("listsdetail_type", not_null=True),
        "userid": _USER_FK,
        "postid": Column("int4", foreign_key=_cascade("post", "postid")),
    }, EnumType(
        "listsdetail_type",
        ("member", "post", "unpost", "follower", "pinned", "unshow"),
    )),
    Table("rooms", {
        "id": Column("varchar", 128, not_null=True, primary_key=True),
        "receiverid": Column("varchar", 32, not_null=True, unique=True,
                             foreign_key=_cascade("users", "id")),
        "senderid": Column("varchar", 32, not_null=True, unique=True,
                           foreign_key=_cascade("users", "id")),
        "createat": _TIMESTAMP,
    }),
    Table("roomsdetail", {
        "id": Column("serial4", not_null=True),
        "type": Column("roomsdetail_type", not_null=True, primary_key=True),
        "userid": Column("varchar", 32, not_null=True, primary_key=True,
                         foreign_key=_cascade("users", "id")),
        "roomid": Column("varchar", 128, not_null=True, primary_key=True,
                         foreign_key=_cascade("rooms", "id")),
    }, EnumType("roomsdetail_type", ("disable", "pin"))),
    Table("roomssnooze", {
        "id": Column("serial4", not_null=True),
        "type": Column("roomssnooze_type", not_null=True),
        "userid": Column("varchar", 32, not_null=True, primary_key=True,
                         foreign_key=_cascade("users", "id")),
        "roomid": Column("varchar", 128, not_null=True, primary_key=True,
                         foreign_key=_cascade("rooms", "id")),
        "createat": _TIMESTAMP,
    }, EnumType("roomssnooze_type", ("1h", "8h", "1w", "forever"))),
    Table("messages", {
        "id": Column("serial4", not_null=True, primary_key=True),
        "roomid": Column("varchar", 128, not_null=True, foreign_key=_cascade("rooms", "id")),
        "senderid": _USER_FK,
        "content": Column("varchar", 512, not_null=True),
        "createat": _TIMESTAMP,
        "seen": Column("bool", default="false", not_null=True),
        "parentid": Column("int4", foreign_key=_set_null("messages", "id")),
    }),
    Table("messagesdetail", {
        "id": Column("serial4", not_null=True),
        "type": Column("messagesdetail_type", not_null=True, primary_key=True),
        "messageid": Column("int4", not_null=True, primary_key=True,
                            foreign_key=_cascade("messages", "id")),
        "userid": Column("varchar", 32, not_null=True, primary_key=True,
                         foreign_key=_cascade("users", "id")),
        "content": Column("varchar", 256, default="", not_null=True),
    }, EnumType("messagesdetail_type", ("react", "disable", "image", "gif"))),
    Table("messagesmedia", {
        "id": Column("serial4", not_null=True),
        "type": Column("messagesmedia_type", not_null=True, primary_key=True),
        "messageid": Column("int4", not_null=True, primary_key=True,
                            foreign_key=_cascade("messages", "id")),
        "url": Column("varchar", 256, not_null=True),
        "width": Column("int4", not_null=True),
        "height": Column("int4", not_null=True),
    }, EnumType("messagesmedia_type", ("image", "gif"))),
)

VIEWS: Tuple[View, ...] = (
    View("advancedusers", (
        "id", "nickname", "image", "banner", "desc", "location", "birth",
        "refer", "verified", "regist", "Followers", "Followings", "_count",
    ), view_sql.advanced_users),
    View("advancedpost", (
        "postid", "userid", "User", "content", "images", "createat",
        "parentid", "Parent", "originalid", "Original", "quote", "pinned",
        "scope", "Hearts", "Reposts", "Comments", "Bookmarks", "_count",
    ), view_sql.advanced_post),
    View("advancedlists", (
        "id", "userid", "User", "name", "description", "banner", "thumbnail",
        "make", "createat", "Member", "Follower", "UnShow", "Posts",
    ), view_sql.advanced_lists),
    View("advancedrooms", (
        "id", "receiverid", "Receiver", "senderid", "Sender", "createat", "sent",
    ), view_sql.advanced_rooms),
    View("advancedmessages", (
        "id", "roomid", "senderid", "Sender", "content", "createat", "seen",
        "parentid", "Parent", "Disable", "React", "Media",
    ), view_sql.advanced_messages),
)

REGISTRY = SchemaRegistry(TABLES, VIEWS)
