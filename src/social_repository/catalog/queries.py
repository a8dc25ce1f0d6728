# src/social_repository/catalog/queries.py
"""
Named query builders.

Simple listings go through the generic compiler against a view. Lists,
rooms and message search start from a hand-written template in which the
viewer id is always ``$1``; optional filters are compiled by ``make_where``
starting at ``$2``.
"""

from typing import Any, List, Literal, Optional, Sequence

from social_repository.base.compiler import (
    CompiledQuery,
    compile_insert,
    compile_select,
    compile_update,
    make_limit,
    make_order,
    make_where,
)
from social_repository.base.query import (
    UNSET,
    Logic,
    OffsetPagination,
    Operator,
    Order,
    SortDirection,
    Where,
    WhereGroups,
)
from social_repository.base.utils import prepare_for_storage

ListsFilter = Literal["all", "own", "memberships"]
ListsRelation = Literal["Following", "Not Following"]
PostsFilter = Literal["all", "media"]
PostsSort = Literal["recent", "Hearts"]


def _contains_id(value: Any) -> List[dict]:
    return [{"id": value}]


def _like(text: str) -> str:
    return f"%{text}%"


def _nullable(field: str, value: Any) -> Where:
    # None selects rows without a reference ('= NULL' never matches).
    if value is None:
        return Where(field, operator=Operator.IS_NULL)
    return Where(field, value)


def make_pagination(pagination: Optional[OffsetPagination]) -> str:
    """``LIMIT limit OFFSET limit*offset``; ``offset`` is a page index."""
    if pagination is None:
        return ""
    return make_limit(pagination.limit, pagination.row_offset)


def _limit_offset(pagination: Optional[OffsetPagination]):
    if pagination is None:
        return None, None
    return pagination.limit, pagination.row_offset


# --- Users ---
def select_users_query(
    where: Optional[WhereGroups] = None,
    order: Optional[Sequence[Order]] = None,
    pagination: Optional[OffsetPagination] = None,
) -> CompiledQuery:
    limit, offset = _limit_offset(pagination)
    return compile_select(
        "advancedusers", where=where, order=order, limit=limit, offset=offset
    )


def select_user_login_query(id: str, password: Any, nickname: Any = UNSET) -> CompiledQuery:
    """Matching user id from the base table; the password never leaves it."""
    return compile_select(
        "users",
        fields=["id"],
        where=[
            [Where("id", id), Where("nickname", nickname, logic=Logic.OR)],
            [Where("password", password)],
        ],
        limit=1,
    )


def insert_users_query(
    id: str,
    password: str,
    nickname: str,
    image: str,
    birth: Any = None,
) -> CompiledQuery:
    return compile_insert(
        "users",
        ["id", "password", "nickname", "birth", "image"],
        [id, password, nickname, prepare_for_storage(birth) or None, image],
    )


def update_users_query(
    id: str,
    nickname: Any = UNSET,
    desc: Any = UNSET,
    location: Any = UNSET,
    birth: Any = UNSET,
    refer: Any = UNSET,
    image: Any = UNSET,
    banner: Any = UNSET,
    verified: Any = UNSET,
) -> CompiledQuery:
    """Only supplied fields are updated. An empty ``banner`` clears it."""
    changes = {
        "nickname": nickname,
        "desc": desc,
        "location": location,
        "birth": birth,
        "refer": refer,
        "image": image,
        "banner": (None if banner == "" else banner),
        "verified": verified,
    }
    fields = [k for k, v in changes.items() if v is not UNSET]
    values = [prepare_for_storage(changes[k]) for k in fields]
    return compile_update("users", fields, values, [[Where("id", id)]])


# --- Posts ---
def select_posts_query(
    userid: Any = UNSET,
    userids: Any = UNSET,
    parentid: Any = UNSET,
    originalid: Any = UNSET,
    quote: Any = UNSET,
    postids: Any = UNSET,
    filter: Optional[PostsFilter] = None,
    q: Optional[str] = None,
    sort: Optional[PostsSort] = None,
    pagination: Optional[OffsetPagination] = None,
) -> CompiledQuery:
    conditions = [
        Where("userid", userid),
        Where("userid", userids, Operator.IN),
        _nullable("parentid", parentid),
        _nullable("originalid", originalid),
        Where("quote", quote),
        Where("postid", postids, Operator.IN),
    ]
    if filter == "media":
        conditions.append(Where("images", [], Operator.NE))
    if q:
        conditions.append(Where("content", _like(q), Operator.ILIKE))

    order = [Order("createat", SortDirection.DESC)]
    if sort == "Hearts":
        order.insert(0, Order("Hearts", SortDirection.DESC, func="jsonb_array_length"))

    limit, offset = _limit_offset(pagination)
    return compile_select(
        "advancedpost", where=[conditions], order=order, limit=limit, offset=offset
    )


# --- Lists ---
_LISTS_TEMPLATE = """select
\tal.id,
\tal.userid,
\tal."User",
\tal.name,
\tal.description,
\tal.banner,
\tal.thumbnail,
\tal.make,
\tal.createat,
\tal."Member",
\tal."Follower",
\tal."UnShow",
\tal."Posts",
\tld.id is not null as "Pinned"
from
\tadvancedlists al
left outer join (
\tselect
\t\tid,
\t\tlistid
\tfrom
\t\tlistsdetail
\twhere
\t\ttype = 'pinned'
\t\tand userid = $1) ld on
\tld.listid = al.id
"""


def select_lists_query(
    sessionid: str,
    id: Any = UNSET,
    userid: Any = UNSET,
    make: Any = UNSET,
    filter: Optional[ListsFilter] = None,
    q: Optional[str] = None,
    include_self: bool = True,
    relation: Optional[ListsRelation] = None,
    sort: Optional[Literal["Follower"]] = None,
    order: Optional[Sequence[Order]] = None,
    pagination: Optional[OffsetPagination] = None,
) -> CompiledQuery:
    groups: List[List[Where]] = [[
        Where("id", id, table_alias="al"),
        Where("make", make, table_alias="al"),
        Where("name", _like(q) if q else UNSET, Operator.ILIKE, table_alias="al"),
    ]]

    if filter == "all":
        groups.append([
            Where("userid", userid, table_alias="al"),
            Where("Follower", _contains_id(userid) if userid is not UNSET else UNSET,
                  Operator.CONTAINS, Logic.OR, table_alias="al"),
        ])
    elif filter == "memberships":
        groups.append([
            Where("Member", _contains_id(userid) if userid is not UNSET else UNSET,
                  Operator.CONTAINS, table_alias="al"),
        ])
    else:
        groups.append([Where("userid", userid, table_alias="al")])

    if relation is not None:
        groups.append([
            Where("Follower", _contains_id(sessionid), Operator.CONTAINS,
                  table_alias="al", not_=(relation == "Not Following")),
        ])
    if not include_self:
        groups.append([Where("userid", sessionid, Operator.NE, table_alias="al")])

    where_text, values, _ = make_where(groups, 2)

    ordering = []
    if userid is not UNSET and sessionid == userid:
        ordering.append(Order("Pinned", SortDirection.DESC))
    if sort == "Follower":
        ordering.append(
            Order("Follower", SortDirection.DESC, table_alias="al", func="jsonb_array_length")
        )
    ordering.append(Order("createat", SortDirection.DESC, table_alias="al"))
    ordering.extend(order or ())

    text = _LISTS_TEMPLATE + where_text + make_order(ordering) + make_pagination(pagination)
    return CompiledQuery(text, [sessionid] + values)


# --- Rooms ---
_ROOMS_TEMPLATE = """select
\tar.id,
\tar.receiverid,
\tar."Receiver",
\tar.senderid,
\tar."Sender",
\tar.createat,
\tm.id as lastmessageid,
\tm.lastmessagesenderid,
\tm.type,
\tm.content,
\tm.lastat,
\tar.sent,
\trd_pin.roomid is not null as "Pinned",
\trd_disable.roomid is not null as "Disabled",
\tcase
\t\twhen rs_snooze.roomid is null then null
\t\telse jsonb_build_object('type', rs_snooze.type, 'createat', rs_snooze.createat)
\tend as "Snooze"
from
\tadvancedrooms ar
left join (
\tselect
\t\tmax_m.roomid,
\t\tm.id,
\t\tm.senderid as lastmessagesenderid,
\t\tmm.type,
\t\tm.content,
\t\tm.createat as lastat
\tfrom
\t\tmessages m
\tleft outer join messagesmedia mm on
\t\tmm.messageid = m.id
\tinner join (
\t\tselect
\t\t\tm.roomid,
\t\t\tmax(m.id) as messageid
\t\tfrom
\t\t\tmessages m
\t\tleft outer join messagesdetail md on
\t\t\tmd.messageid = m.id
\t\t\tand md.type = 'disable'
\t\t\tand md.userid = $1
\t\twhere
\t\t\tmd.type is null
\t\tgroup by
\t\t\tm.roomid) max_m on
\t\tmax_m.messageid = m.id) m on
\tm.roomid = ar.id
left outer join roomsdetail rd_pin on
\trd_pin.roomid = ar.id
\tand rd_pin.type = 'pin'
\tand rd_pin.userid = $1
left outer join roomsdetail rd_disable on
\trd_disable.roomid = ar.id
\tand rd_disable.type = 'disable'
\tand rd_disable.userid = $1
left outer join roomssnooze rs_snooze on
\trs_snooze.roomid = ar.id
\tand rs_snooze.userid = $1
"""

_ROOMS_DEFAULT_ORDER = (
    Order("Pinned", SortDirection.DESC),
    Order("lastat", SortDirection.DESC, nulls_last=True),
)


def select_advanced_rooms_query(
    sessionid: str,
    roomid: Any = UNSET,
    senderid: Any = UNSET,
    receiverid: Any = UNSET,
    find_userid: Any = UNSET,
    order: Optional[Sequence[Order]] = None,
) -> CompiledQuery:
    groups = [
        [Where("id", roomid, table_alias="ar")],
        [Where("senderid", senderid, table_alias="ar")],
        [Where("receiverid", receiverid, table_alias="ar")],
        [
            Where("receiverid", find_userid, table_alias="ar"),
            Where("senderid", find_userid, logic=Logic.OR, table_alias="ar"),
        ],
    ]
    where_text, values, _ = make_where(groups, 2)
    text = _ROOMS_TEMPLATE + where_text + make_order(list(_ROOMS_DEFAULT_ORDER) + list(order or ()))
    return CompiledQuery(text, [sessionid] + values)


def select_rooms_notification(sessionid: str) -> CompiledQuery:
    text = """select
\tr.id,
\tcount(*)::int as "Notifications"
from
\trooms r
inner join messages m on
\tm.roomid = r.id
where
\t(r.senderid = $1
\t\tor r.receiverid = $1)
\tand m.senderid <> $1
\tand m.seen = false
group by
\tr.id
"""
    return CompiledQuery(text, [sessionid])


# --- Messages ---
def select_messages_query(
    roomid: str,
    sessionid: Any = UNSET,
    cursor: Any = UNSET,
    pagination: Optional[OffsetPagination] = None,
) -> CompiledQuery:
    """Messages of a room not disabled by the viewer, newest first."""
    where = [
        [Where("roomid", roomid)],
        [Where("Disable", _contains_id(sessionid) if sessionid is not UNSET else UNSET,
               Operator.CONTAINS, not_=True)],
        [Where("id", cursor or UNSET, Operator.LT)],
    ]
    limit, offset = _limit_offset(pagination)
    return compile_select(
        "advancedmessages",
        where=where,
        order=[Order("id", SortDirection.DESC)],
        limit=limit,
        offset=offset,
    )


_MESSAGES_SEARCH_TEMPLATE = """select
\trow_to_json(ar.*)::jsonb as "Room",
\tam.*
from
\tadvancedmessages am
inner join advancedrooms ar on
\tar.id = am.roomid
"""


def select_messages_list_search(
    sessionid: str,
    query: str = "",
    cursor: Optional[int] = None,
    pagination: Optional[OffsetPagination] = None,
) -> CompiledQuery:
    """
    Messages in the viewer's rooms whose content matches ``query``.

    Keyset paging on ``id < cursor`` (a falsy cursor means the first page),
    newest first.
    """
    groups = [
        [
            Where("senderid", sessionid, table_alias="ar"),
            Where("receiverid", sessionid, logic=Logic.OR, table_alias="ar"),
        ],
        [Where("content", _like(query), Operator.LIKE, table_alias="am")],
        [Where("Disable", _contains_id(sessionid), Operator.CONTAINS,
               table_alias="am", not_=True)],
        [Where("id", cursor or UNSET, Operator.LT, table_alias="am")],
    ]
    where_text, values, _ = make_where(groups)
    text = (
        _MESSAGES_SEARCH_TEMPLATE
        + where_text
        + make_order([Order("id", SortDirection.DESC, table_alias="am")])
        + make_pagination(pagination)
    )
    return CompiledQuery(text, values)


# --- Hashtags ---
def select_hashtags_query(
    type: Any = UNSET,
    pagination: Optional[OffsetPagination] = None,
) -> CompiledQuery:
    limit, offset = _limit_offset(pagination)
    return compile_select(
        "hashtags",
        where=[[Where("type", type)]],
        order=[Order("count", SortDirection.DESC), Order("weight", SortDirection.DESC)],
        limit=limit,
        offset=offset,
    )
