# src/social_repository/schema/views.py
"""
SQL for the read-only "advanced" views.

Each builder takes the schema name and returns a complete
``CREATE OR REPLACE VIEW`` statement. Aggregated arrays default to an empty
JSON array (never NULL) and aggregated counts default to 0.
"""

from typing import List, Tuple


def _q(schema: str) -> str:
    return '"' + schema.replace('"', '""') + '"'


def _user_summary(schema: str, alias: str) -> str:
    return (
        f"(select id, nickname, image, verified from {_q(schema)}.users) {alias}"
    )


def _or_empty(expr: str, name: str) -> str:
    return f"coalesce({expr}, '[]'::jsonb) as \"{name}\""


def _grouped_ids(
    schema: str, table: str, group_col: str, id_col: str, where: str, alias: str, on: str
) -> str:
    """LEFT JOIN producing ``alias.value`` (jsonb array of {"id": ...}) and ``alias.count``."""
    return (
        f"left join (\n"
        f"\tselect\n"
        f"\t\tg.{group_col},\n"
        f"\t\tjsonb_agg(jsonb_build_object('id', g.id)) as value,\n"
        f"\t\tcount(*) as count\n"
        f"\tfrom\n"
        f"\t\t(select {group_col}, {id_col} as id from {_q(schema)}.{table} where {where}) g\n"
        f"\tgroup by\n"
        f"\t\tg.{group_col}) {alias} on\n"
        f"\t{on}\n"
    )


# --- advancedusers ---
def advanced_users(schema: str) -> str:
    s = _q(schema)
    return f"""create or replace view {s}.advancedusers as
select
\tu.id,
\tu.nickname,
\tu.image,
\tu.banner,
\tu."desc",
\tu.location,
\tu.birth,
\tu.refer,
\tu.verified,
\tu.regist,
\t{_or_empty('follower.value', 'Followers')},
\t{_or_empty('following.value', 'Followings')},
\tjsonb_build_object(
\t\t'Followers', coalesce(follower.count, 0),
\t\t'Followings', coalesce(following.count, 0)) as _count
from
\t{s}.users u
{_grouped_ids(schema, 'follow', 'source', 'target', 'true', 'following', 'following.source = u.id')}\
{_grouped_ids(schema, 'follow', 'target', 'source', 'true', 'follower', 'follower.target = u.id')}\
order by
\tu.regist desc;"""


# --- advancedpost ---
_REACTIONS: Tuple[Tuple[str, str], ...] = (
    ("Heart", "Hearts"),
    ("Repost", "Reposts"),
    ("Comment", "Comments"),
    ("Bookmark", "Bookmarks"),
)


def _post_level(schema: str, depth: int) -> str:
    """
    Select list + joins for one nesting level of a post.

    Level 0 is the top-level post (with Parent and Original), level 1 is the
    Original (with its own Original), level 2 is the innermost Original.
    """
    s = _q(schema)
    p = f"p_{depth}"
    u = f"u_{depth}"
    v = f"v_{depth}"

    columns: List[str] = [
        f"{p}.postid",
        f"{p}.userid",
        f'row_to_json({u}.*)::jsonb as "User"',
        f"{p}.content",
        f"{p}.images",
        f"{p}.createat",
        f"{p}.parentid",
    ]
    if depth == 0:
        columns.append('row_to_json(parent.*)::jsonb as "Parent"')
    columns.append(f"{p}.originalid")
    if depth < 2:
        columns.append(f'row_to_json(original_{depth}.*)::jsonb as "Original"')
    columns += [f"{p}.quote", f"{p}.pinned", f"{p}.scope"]

    counts: List[str] = []
    joins = [f"join {_user_summary(schema, u)} on\n\t{u}.id = {p}.userid\n"]
    for reaction, name in _REACTIONS:
        alias = f"{reaction.lower()}_{depth}"
        columns.append(_or_empty(f"{alias}.value", name))
        counts.append(f"'{name}', coalesce({alias}.count, 0)")
        joins.append(_grouped_ids(
            schema, "reactions", "postid", "userid",
            f"type = '{reaction}'", alias, f"{alias}.postid = {p}.postid",
        ))
    counts.append(f"'Views', coalesce({v}.impressions, 0)")
    columns.append(
        "jsonb_build_object(\n\t\t" + ",\n\t\t".join(counts) + ") as _count"
    )
    joins.append(f"left join {s}.views {v} on\n\t{v}.postid = {p}.postid\n")

    if depth == 0:
        joins.append(
            f"left join (\n"
            f"\tselect pp.postid, row_to_json(pu.*)::jsonb as \"User\", pp.images\n"
            f"\tfrom {s}.post pp\n"
            f"\tjoin {_user_summary(schema, 'pu')} on pu.id = pp.userid) parent on\n"
            f"\tparent.postid = {p}.parentid\n"
        )
    if depth < 2:
        joins.append(
            f"left join (\n{_post_level(schema, depth + 1)}) original_{depth} on\n"
            f"\toriginal_{depth}.postid = {p}.originalid\n"
        )

    return (
        "select\n\t" + ",\n\t".join(columns) + "\n"
        f"from\n\t{s}.post {p}\n" + "".join(joins)
    )


def advanced_post(schema: str) -> str:
    return (
        f"create or replace view {_q(schema)}.advancedpost as\n"
        f"{_post_level(schema, 0)}"
        f"order by\n\tp_0.createat desc;"
    )


# --- advancedlists ---
def advanced_lists(schema: str) -> str:
    s = _q(schema)
    details = [("member", "Member"), ("follower", "Follower"), ("unshow", "UnShow")]
    columns = ",\n\t".join(_or_empty(f"{kind}.value", name) for kind, name in details)
    joins = "".join(
        _grouped_ids(
            schema, "listsdetail", "listid", "userid",
            f"type = '{kind}'", kind, f"{kind}.listid = l.id",
        )
        for kind, _ in details
    )
    return f"""create or replace view {s}.advancedlists as
select
\tl.id,
\tl.userid,
\trow_to_json(u.*)::jsonb as "User",
\tl.name,
\tl.description,
\tl.banner,
\tl.thumbnail,
\tl.make,
\tl.createat,
\t{columns},
\t{_or_empty('posts.value', 'Posts')}
from
\t{s}.lists l
join {_user_summary(schema, 'u')} on
\tu.id = l.userid
{joins}\
left join (
\tselect
\t\tp2.listid,
\t\tjsonb_agg(p2.postid order by p2.postid) as value
\tfrom
\t\t(
\t\tselect ld.listid, p.postid
\t\tfrom {s}.post p
\t\tjoin {s}.listsdetail ld on
\t\t\tld.userid = p.userid and ld.type = 'member'
\t\tunion
\t\tselect ld.listid, ld.postid
\t\tfrom {s}.listsdetail ld
\t\twhere ld.type = 'post') p2
\twhere
\t\t(p2.listid, p2.postid) not in (
\t\t\tselect listid, postid from {s}.listsdetail
\t\t\twhere type = 'unpost' and postid is not null)
\tgroup by
\t\tp2.listid) posts on
\tposts.listid = l.id
order by
\tfollower.count,
\tmember.count;"""


# --- advancedrooms ---
def advanced_rooms(schema: str) -> str:
    s = _q(schema)
    return f"""create or replace view {s}.advancedrooms as
select
\tr.id,
\tr.receiverid,
\trow_to_json(receiver.*)::jsonb as "Receiver",
\tr.senderid,
\trow_to_json(sender.*)::jsonb as "Sender",
\tr.createat,
\tcoalesce(n.sent, '[]'::jsonb) as sent
from
\t{s}.rooms r
join {_user_summary(schema, 'receiver')} on
\treceiver.id = r.receiverid
join {_user_summary(schema, 'sender')} on
\tsender.id = r.senderid
left join (
\tselect
\t\ta.roomid,
\t\tjsonb_agg(jsonb_build_object('id', a.id, 'count', a.count)) as sent
\tfrom
\t\t(
\t\tselect roomid, senderid as id, count(senderid) as count
\t\tfrom {s}.messages
\t\twhere seen = false
\t\tgroup by roomid, senderid) a
\tgroup by
\t\ta.roomid) n on
\tn.roomid = r.id;"""


# --- advancedmessages ---
def advanced_messages(schema: str) -> str:
    s = _q(schema)
    return f"""create or replace view {s}.advancedmessages as
select
\tm.id,
\tm.roomid,
\tm.senderid,
\trow_to_json(u.*)::jsonb as "Sender",
\tm.content,
\tm.createat,
\tm.seen,
\tm.parentid,
\trow_to_json(am.*)::jsonb as "Parent",
\t{_or_empty('md_disable.value', 'Disable')},
\t{_or_empty('md_react.value', 'React')},
\tmm.value as "Media"
from
\t{s}.messages m
join {_user_summary(schema, 'u')} on
\tu.id = m.senderid
{_grouped_ids(schema, 'messagesdetail', 'messageid', 'userid', "type = 'disable'", 'md_disable', 'md_disable.messageid = m.id')}\
left join (
\tselect
\t\tmd.messageid,
\t\tjsonb_agg(jsonb_build_object(
\t\t\t'id', md.userid, 'nickname', mu.nickname, 'image', mu.image,
\t\t\t'verified', mu.verified, 'content', md.content)) as value
\tfrom
\t\t{s}.messagesdetail md
\tjoin {s}.users mu on
\t\tmu.id = md.userid
\twhere
\t\tmd.type = 'react'
\tgroup by
\t\tmd.messageid) md_react on
\tmd_react.messageid = m.id
left join (
\tselect messageid, to_jsonb(media.*) - 'messageid' as value
\tfrom {s}.messagesmedia media) mm on
\tmm.messageid = m.id
left join (
\tselect
\t\tm_1.id,
\t\tm_1.senderid,
\t\trow_to_json(u_1.*)::jsonb as "Sender",
\t\tm_1.content,
\t\tm_1.createat,
\t\tmm_1.value as "Media"
\tfrom
\t\t{s}.messages m_1
\tjoin {_user_summary(schema, 'u_1')} on
\t\tu_1.id = m_1.senderid
\tleft join (
\t\tselect messageid, to_jsonb(media.*) - 'messageid' as value
\t\tfrom {s}.messagesmedia media) mm_1 on
\t\tmm_1.messageid = m_1.id) am on
\tam.id = m.parentid
order by
\tm.id desc;"""
