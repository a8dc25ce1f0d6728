# src/social_repository/db_implementations/postgresql_dao.py
"""
Per-request data-access object over asyncpg.

One ``PostgresDAO`` borrows exactly one pooled connection for its lifetime.
Every public operation returns a tagged result (``Ok`` / ``NotFound`` /
``Err``); construction errors from the compiler are raised before any SQL
is sent.
"""

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from logging import LoggerAdapter
from typing import (
    Any,
    AsyncGenerator,
    List,
    Literal,
    Mapping,
    Optional,
    Sequence,
    Type,
    TypeVar,
)

import asyncpg
from pydantic import BaseModel, ValidationError

from social_repository.base.compiler import (
    CompiledQuery,
    Increment,
    compile_delete,
    compile_insert,
    compile_select,
    compile_update,
)
from social_repository.base.exceptions import (
    DAOReleasedError,
    InvalidMethod,
    InvalidParameter,
    KeyAlreadyExistsException,
)
from social_repository.base.pagination import Page, paginate_after_cursor
from social_repository.base.query import (
    UNSET,
    Logic,
    OffsetPagination,
    Operator,
    Order,
    SortDirection,
    Where,
)
from social_repository.base.result import Err, NotFound, Ok, Result
from social_repository.base.utils import split_changes
from social_repository.catalog.queries import (
    select_advanced_rooms_query,
    select_hashtags_query,
    select_lists_query,
    select_messages_list_search,
    select_messages_query,
    select_posts_query,
    select_rooms_notification,
    select_user_login_query,
    select_users_query,
    insert_users_query,
    update_users_query,
)
from social_repository.models import (
    AdvancedLists,
    AdvancedMessage,
    AdvancedPost,
    AdvancedRoom,
    AdvancedUser,
    Follow,
    Hashtag,
    ListsDetail,
    Message,
    MessagesDetail,
    Reaction,
    Room,
    RoomNotification,
    RoomsSnooze,
    Views,
    Lists,
    Post,
)

M = TypeVar("M", bound=BaseModel)

Method = Literal["post", "delete"]

EXECUTION_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
    ValidationError,
)

VIEWS_KEYS = ("impressions", "engagements", "detailexpands", "newfollowers", "profilevisit")

_HASHTAG_RE = re.compile(r"#[^\s#)\]]+")


def _check_method(method: Any) -> str:
    if method not in ("post", "delete"):
        raise InvalidMethod(method)
    return method


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def extract_hashtags(content: str) -> List[str]:
    """Unique ``#tags`` in order of first appearance, compared case-insensitively."""
    seen = set()
    tags: List[str] = []
    for match in _HASHTAG_RE.findall(content or ""):
        tag = match.lstrip("#")
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            tags.append(tag)
    return tags


class PostgresDAO:
    """
    Data-access facade owning one pooled connection.

    The connection is acquired lazily on first use (``init`` is idempotent)
    and must be returned with ``release``; ``async with`` does both. One
    instance must not be shared by concurrent tasks.
    """

    # --- Initialization ---
    def __init__(self, pool: asyncpg.Pool, logger: Optional[LoggerAdapter] = None):
        self._pool = pool
        self._conn: Optional[asyncpg.Connection] = None
        self._released = False
        self._last_sql = ""
        self._logger = logger or LoggerAdapter(
            logging.getLogger(f"{__name__}.{self.__class__.__name__}"), {}
        )

    async def __aenter__(self) -> "PostgresDAO":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    # --- Connection Management ---
    async def init(self) -> None:
        if self._released:
            raise DAOReleasedError()
        if self._conn is None:
            self._conn = await self._pool.acquire()
            self._logger.debug(f"Acquired connection {self._conn} from pool.")

    async def release(self) -> None:
        if self._released:
            self._logger.warning("release() called on an already released DAO.")
            return
        self._released = True
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await self._pool.release(conn)
            self._logger.debug(f"Released connection {conn} back to pool.")

    @property
    def released(self) -> bool:
        return self._released

    async def _connection(self) -> asyncpg.Connection:
        await self.init()
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Run a block in one transaction; any exception rolls it back."""
        conn = await self._connection()
        async with conn.transaction():
            yield conn

    async def _lock(self, conn: asyncpg.Connection, key: str) -> None:
        """Serialize concurrent toggles on the same key until the transaction ends."""
        self._last_sql = "SELECT pg_advisory_xact_lock(hashtext($1))"
        await conn.execute(self._last_sql, key)

    # --- Raw Execution (raises) ---
    async def _fetch(self, query: CompiledQuery) -> List[asyncpg.Record]:
        conn = await self._connection()
        self._last_sql = query.text
        self._logger.debug(f"Executing: SQL={query.text!r}, Params={query.values!r}")
        return await conn.fetch(query.text, *query.values)

    async def _fetchrow(self, query: CompiledQuery) -> Optional[asyncpg.Record]:
        conn = await self._connection()
        self._last_sql = query.text
        self._logger.debug(f"Executing: SQL={query.text!r}, Params={query.values!r}")
        return await conn.fetchrow(query.text, *query.values)

    def _err(self, operation: str, error: BaseException) -> Err:
        cause: BaseException = error
        if isinstance(error, asyncpg.UniqueViolationError):
            cause = KeyAlreadyExistsException(
                f"Unique constraint '{getattr(error, 'constraint_name', None)}' "
                f"violated during {operation}. Detail: {getattr(error, 'detail', None)}"
            )
            cause.__cause__ = error
        self._logger.error(
            f"Error during {operation}: {error}. SQL: {self._last_sql!r}",
            exc_info=error,
        )
        return Err(cause, f"{operation}: {self._last_sql}")

    # --- Result Helpers ---
    async def _one(self, operation: str, query: CompiledQuery, model: Type[M]) -> Result[M]:
        try:
            row = await self._fetchrow(query)
            if row is None:
                self._logger.debug(f"{operation}: no matching row.")
                return NotFound(operation)
            return Ok(model.model_validate(dict(row)))
        except EXECUTION_ERRORS as e:
            return self._err(operation, e)

    async def _many(
        self, operation: str, query: CompiledQuery, model: Type[M]
    ) -> Result[List[M]]:
        try:
            rows = await self._fetch(query)
            return Ok([model.model_validate(dict(r)) for r in rows])
        except EXECUTION_ERRORS as e:
            return self._err(operation, e)

    async def _exists(self, table: str, conditions: Sequence[Where]) -> bool:
        row = await self._fetchrow(
            compile_select(table, where=[conditions], limit=1)
        )
        return row is not None

    async def _toggle(
        self,
        operation: str,
        method: Method,
        table: str,
        conditions: Sequence[Where],
        insert: Mapping[str, Any],
        lock_key: str,
    ) -> Result[bool]:
        """
        Insert the row if ``method`` is 'post' and it is absent, delete it if
        'delete' and present. ``Ok(True)`` when something changed.
        """
        _check_method(method)
        fields, values = split_changes(insert)
        insert_query = compile_insert(table, fields, values)
        delete_query = compile_delete(table, [conditions])
        try:
            async with self.transaction() as conn:
                await self._lock(conn, lock_key)
                exists = await self._exists(table, conditions)
                if method == "post" and not exists:
                    await self._fetchrow(insert_query)
                    return Ok(True)
                if method == "delete" and exists:
                    await self._fetch(delete_query)
                    return Ok(True)
                self._logger.debug(f"{operation}: no change ({method}, exists={exists}).")
                return Ok(False)
        except EXECUTION_ERRORS as e:
            return self._err(operation, e)

    # --- Users ---
    async def get_user(
        self, id: str, password: Any = UNSET, nickname: Any = UNSET
    ) -> Result[AdvancedUser]:
        """Find by id (or nickname), optionally also matching the password."""
        if password is not UNSET:
            try:
                row = await self._fetchrow(select_user_login_query(id, password, nickname))
            except EXECUTION_ERRORS as e:
                return self._err("get_user", e)
            if row is None:
                self._logger.debug("get_user: credentials did not match.")
                return NotFound("get_user")
            id, nickname = row["id"], UNSET
        query = select_users_query(where=[
            [Where("id", id), Where("nickname", nickname, logic=Logic.OR)],
        ])
        return await self._one("get_user", query, AdvancedUser)

    async def get_user_list(
        self, q: Optional[str] = None, pagination: Optional[OffsetPagination] = None
    ) -> Result[List[AdvancedUser]]:
        like = f"%{_escape_like(q)}%" if q else UNSET
        query = select_users_query(
            where=[[
                Where("id", like, Operator.ILIKE),
                Where("nickname", like, Operator.ILIKE, Logic.OR),
            ]],
            order=[Order("regist")],
            pagination=pagination,
        )
        return await self._many("get_user_list", query, AdvancedUser)

    async def get_user_list_with_ids(self, userids: Sequence[str]) -> Result[List[AdvancedUser]]:
        query = select_users_query(where=[[Where("id", list(userids), Operator.IN)]])
        return await self._many("get_user_list_with_ids", query, AdvancedUser)

    async def get_user_page(
        self, q: Optional[str] = None, cursor: Optional[str] = None, size: int = 10
    ) -> Result[Page[AdvancedUser]]:
        result = await self.get_user_list(q=q)
        return result.map(lambda users: paginate_after_cursor(users, cursor, size, "id"))

    async def create_user(
        self, id: str, password: str, nickname: str, image: str, birth: Any = None
    ) -> Result[AdvancedUser]:
        query = insert_users_query(id=id, password=password, nickname=nickname, image=image, birth=birth)
        try:
            await self._fetchrow(query)
        except EXECUTION_ERRORS as e:
            return self._err("create_user", e)
        self._logger.info(f"Created user '{id}'.")
        return await self.get_user(id)

    async def update_user(self, id: str, **changes: Any) -> Result[AdvancedUser]:
        query = update_users_query(id=id, **changes)
        try:
            row = await self._fetchrow(query)
        except EXECUTION_ERRORS as e:
            return self._err("update_user", e)
        if row is None:
            return NotFound(f"update_user: user '{id}'")
        return await self.get_user(id)

    async def delete_birth(self, id: str) -> Result[AdvancedUser]:
        return await self.update_user(id, birth=None)

    # --- Follow ---
    async def get_follow_list(
        self, source: Any = UNSET, target: Any = UNSET
    ) -> Result[List[Follow]]:
        query = compile_select(
            "follow", where=[[Where("source", source)], [Where("target", target)]]
        )
        return await self._many("get_follow_list", query, Follow)

    async def follow_handler(self, method: Method, source: str, target: str) -> Result[AdvancedUser]:
        """Follow ('post') or unfollow ('delete') ``target``; returns the refreshed target."""
        result = await self._toggle(
            "follow_handler",
            method,
            "follow",
            [Where("source", source), Where("target", target)],
            {"source": source, "target": target},
            f"follow:{source}:{target}",
        )
        if not result.ok:
            return result
        return await self.get_user(target)

    # --- Posts ---
    async def get_post(self, postid: int, userid: Any = UNSET) -> Result[AdvancedPost]:
        query = compile_select(
            "advancedpost", where=[[Where("postid", postid), Where("userid", userid)]]
        )
        return await self._one("get_post", query, AdvancedPost)

    async def get_post_list(self, **filters: Any) -> Result[List[AdvancedPost]]:
        """Filters are those of ``select_posts_query``."""
        query = select_posts_query(**filters)
        return await self._many("get_post_list", query, AdvancedPost)

    async def get_post_list_with_ids(self, postids: Sequence[int]) -> Result[List[AdvancedPost]]:
        return await self.get_post_list(postids=list(postids))

    async def get_post_page(
        self, cursor: Any = None, size: int = 10, **filters: Any
    ) -> Result[Page[AdvancedPost]]:
        result = await self.get_post_list(**filters)
        return result.map(lambda posts: paginate_after_cursor(posts, cursor, size, "postid"))

    async def get_bookmark_post_list(self, userid: str) -> Result[List[AdvancedPost]]:
        query = compile_select(
            "advancedpost",
            where=[[Where("Bookmarks", [{"id": userid}], Operator.CONTAINS)]],
            order=[Order("createat", SortDirection.DESC)],
        )
        return await self._many("get_bookmark_post_list", query, AdvancedPost)

    async def create_post(
        self,
        userid: str,
        content: str,
        images: Sequence[Any] = (),
        parentid: Optional[int] = None,
        originalid: Optional[int] = None,
        quote: bool = False,
        scope: str = "every",
    ) -> Result[AdvancedPost]:
        """Insert the post, its zeroed counters row and its hashtags in one transaction."""
        fields, values = split_changes({
            "userid": userid,
            "content": content,
            "images": list(images),
            "parentid": parentid,
            "originalid": originalid,
            "quote": quote,
            "scope": scope,
        })
        query = compile_insert("post", fields, values)
        try:
            async with self.transaction():
                row = await self._fetchrow(query)
                postid = row["postid"]
                await self._bump_views(postid, "impressions", create=True)
                await self._count_hashtags(content)
        except EXECUTION_ERRORS as e:
            return self._err("create_post", e)
        self._logger.info(f"Created post {postid} for user '{userid}'.")
        return await self.get_post(postid)

    async def update_post(
        self,
        postid: int,
        userid: Any = UNSET,
        content: Any = UNSET,
        images: Any = UNSET,
        pinned: Any = UNSET,
        scope: Any = UNSET,
    ) -> Result[AdvancedPost]:
        fields, values = split_changes(
            {"content": content, "images": images, "pinned": pinned, "scope": scope}
        )
        query = compile_update(
            "post", fields, values, [[Where("postid", postid), Where("userid", userid)]]
        )
        try:
            row = await self._fetchrow(query)
        except EXECUTION_ERRORS as e:
            return self._err("update_post", e)
        if row is None:
            return NotFound(f"update_post: post {postid}")
        return await self.get_post(postid)

    async def delete_post(self, postid: int, userid: Any = UNSET) -> Result[Post]:
        query = compile_delete(
            "post", [[Where("postid", postid), Where("userid", userid)]], returning=True
        )
        return await self._one("delete_post", query, Post)

    # --- Reactions ---
    async def get_reaction_list(
        self,
        type: Any = UNSET,
        userid: Any = UNSET,
        postid: Any = UNSET,
        commentid: Any = UNSET,
        quote: Any = UNSET,
    ) -> Result[List[Reaction]]:
        query = compile_select("reactions", where=[[
            Where("type", type),
            Where("userid", userid),
            Where("postid", postid),
            Where("commentid", commentid),
            Where("quote", quote),
        ]])
        return await self._many("get_reaction_list", query, Reaction)

    async def get_like_list(self, userid: Any = UNSET, postid: Any = UNSET) -> Result[List[Reaction]]:
        return await self.get_reaction_list(type="Heart", userid=userid, postid=postid)

    async def reaction_handler(
        self,
        method: Method,
        type: str,
        userid: str,
        postid: int,
        commentid: Optional[int] = None,
        quote: bool = False,
    ) -> Result[AdvancedPost]:
        """
        Add or remove one reaction of ``userid`` on ``postid``.

        Comments are told apart by ``commentid`` and reposts by ``quote``;
        repeating the same request changes nothing.
        """
        if type not in ("Heart", "Repost", "Comment", "Bookmark"):
            raise InvalidParameter(f"Unknown reaction type {type!r}")
        commentid = commentid if type == "Comment" else None
        conditions = [
            Where("type", type),
            Where("userid", userid),
            Where("postid", postid),
            Where("commentid", commentid) if commentid is not None
            else Where("commentid", operator=Operator.IS_NULL),
        ]
        if type == "Repost":
            conditions.append(Where("quote", quote))
        result = await self._toggle(
            "reaction_handler",
            method,
            "reactions",
            conditions,
            {"type": type, "userid": userid, "postid": postid,
             "commentid": commentid, "quote": quote},
            f"reactions:{type}:{userid}:{postid}:{commentid}:{quote}",
        )
        if not result.ok:
            return result
        return await self.get_post(postid)

    # --- Views ---
    async def get_view(self, postid: int) -> Result[Views]:
        query = compile_select("views", where=[[Where("postid", postid)]])
        return await self._one("get_view", query, Views)

    async def _bump_views(self, postid: int, key: str, create: bool) -> None:
        """Increment ``key`` or create the counters row (0 on post creation, 1 otherwise)."""
        update = compile_update("views", [key], [Increment(1)], [[Where("postid", postid)]])
        row = await self._fetchrow(update)
        if row is None:
            counters = {k: 0 for k in VIEWS_KEYS}
            if not create:
                counters[key] = 1
            fields, values = split_changes({"postid": postid, **counters})
            await self._fetchrow(compile_insert("views", fields, values))

    async def views_handler(
        self, postid: int, key: str = "impressions", create: bool = False
    ) -> Result[AdvancedPost]:
        if key not in VIEWS_KEYS:
            raise InvalidParameter(f"Unknown views counter {key!r}")
        try:
            async with self.transaction() as conn:
                await self._lock(conn, f"views:{postid}")
                await self._bump_views(postid, key, create)
        except EXECUTION_ERRORS as e:
            return self._err("views_handler", e)
        return await self.get_post(postid)

    # --- Hashtags ---
    async def get_hashtag_list(
        self, type: Any = UNSET, pagination: Optional[OffsetPagination] = None
    ) -> Result[List[Hashtag]]:
        query = select_hashtags_query(type=type, pagination=pagination)
        return await self._many("get_hashtag_list", query, Hashtag)

    async def _count_hashtags(self, content: str, type: str = "tag") -> List[Hashtag]:
        conn = await self._connection()
        tags = extract_hashtags(content)
        # Locks are taken in a fixed order so concurrent posts cannot deadlock.
        for key in sorted(tag.lower() for tag in tags):
            await self._lock(conn, f"hashtags:{type}:{key}")
        touched: List[Hashtag] = []
        for tag in tags:
            match = [Where("type", type), Where("title", _escape_like(tag), Operator.ILIKE)]
            row = await self._fetchrow(
                compile_update("hashtags", ["count"], [Increment(1)], [match])
            )
            if row is None:
                row = await self._fetchrow(
                    compile_insert("hashtags", ["type", "title"], [type, tag])
                )
            touched.append(Hashtag.model_validate(dict(row)))
        return touched

    async def hashtag_handler(self, content: str, type: str = "tag") -> Result[List[Hashtag]]:
        """Count every ``#tag`` in ``content`` (case-insensitive), creating new ones."""
        try:
            async with self.transaction():
                touched = await self._count_hashtags(content, type)
        except EXECUTION_ERRORS as e:
            return self._err("hashtag_handler", e)
        return Ok(touched)

    # --- Lists ---
    async def get_lists(
        self, sessionid: str, id: int, userid: Any = UNSET, make: Any = UNSET
    ) -> Result[AdvancedLists]:
        query = select_lists_query(sessionid=sessionid, id=id, userid=userid, make=make)
        return await self._one("get_lists", query, AdvancedLists)

    async def get_lists_list(self, sessionid: str, **filters: Any) -> Result[List[AdvancedLists]]:
        """Filters are those of ``select_lists_query``."""
        query = select_lists_query(sessionid=sessionid, **filters)
        return await self._many("get_lists_list", query, AdvancedLists)

    def _lists_detail_where(self, listid, type, userid, postid) -> List[Where]:
        return [
            Where("listid", listid),
            Where("type", type),
            Where("userid", userid),
            Where("postid", postid),
        ]

    async def get_lists_detail(
        self, listid: int, type: str, userid: Any = UNSET, postid: Any = UNSET
    ) -> Result[ListsDetail]:
        query = compile_select(
            "listsdetail", where=[self._lists_detail_where(listid, type, userid, postid)]
        )
        return await self._one("get_lists_detail", query, ListsDetail)

    async def get_lists_detail_list(
        self, listid: Any = UNSET, type: Any = UNSET, userid: Any = UNSET, postid: Any = UNSET
    ) -> Result[List[ListsDetail]]:
        query = compile_select(
            "listsdetail", where=[self._lists_detail_where(listid, type, userid, postid)]
        )
        return await self._many("get_lists_detail_list", query, ListsDetail)

    async def create_list(
        self,
        userid: str,
        name: str,
        banner: str,
        thumbnail: str,
        description: Optional[str] = None,
        make: str = "public",
    ) -> Result[AdvancedLists]:
        fields, values = split_changes({
            "userid": userid, "name": name, "description": description,
            "banner": banner, "thumbnail": thumbnail, "make": make,
        })
        try:
            row = await self._fetchrow(compile_insert("lists", fields, values))
        except EXECUTION_ERRORS as e:
            return self._err("create_list", e)
        return await self.get_lists(sessionid=userid, id=row["id"])

    async def update_lists(
        self,
        id: int,
        userid: str,
        name: Any = UNSET,
        description: Any = UNSET,
        banner: Any = UNSET,
        thumbnail: Any = UNSET,
        make: Any = UNSET,
    ) -> Result[AdvancedLists]:
        fields, values = split_changes({
            "name": name, "description": description, "banner": banner,
            "thumbnail": thumbnail, "make": make,
        })
        query = compile_update(
            "lists", fields, values, [[Where("id", id), Where("userid", userid)]]
        )
        try:
            row = await self._fetchrow(query)
        except EXECUTION_ERRORS as e:
            return self._err("update_lists", e)
        if row is None:
            return NotFound(f"update_lists: list {id}")
        return await self.get_lists(sessionid=userid, id=id)

    async def delete_lists(self, id: int, userid: str) -> Result[Lists]:
        query = compile_delete(
            "lists", [[Where("id", id), Where("userid", userid)]], returning=True
        )
        return await self._one("delete_lists", query, Lists)

    async def lists_detail_handler(
        self,
        method: Method,
        type: str,
        listid: int,
        userid: str,
        postid: Optional[int] = None,
        sessionid: Optional[str] = None,
    ) -> Result[AdvancedLists]:
        """Toggle one membership/follow/pin/post row; returns the refreshed list."""
        conditions = self._lists_detail_where(
            listid, type, userid, postid if postid is not None else UNSET
        )
        result = await self._toggle(
            "lists_detail_handler",
            method,
            "listsdetail",
            conditions,
            {"listid": listid, "type": type, "userid": userid, "postid": postid},
            f"listsdetail:{listid}:{type}:{userid}:{postid}",
        )
        if not result.ok:
            return result
        return await self.get_lists(sessionid=sessionid or userid, id=listid)

    # --- Rooms ---
    async def get_room(
        self, id: Any = UNSET, senderid: Any = UNSET, receiverid: Any = UNSET
    ) -> Result[Room]:
        query = compile_select("rooms", where=[
            [Where("id", id)],
            [Where("senderid", senderid)],
            [Where("receiverid", receiverid)],
        ])
        return await self._one("get_room", query, Room)

    async def get_advanced_room(self, sessionid: str, roomid: str) -> Result[AdvancedRoom]:
        query = select_advanced_rooms_query(sessionid=sessionid, roomid=roomid)
        return await self._one("get_advanced_room", query, AdvancedRoom)

    async def get_rooms_list(
        self, sessionid: str, order: Optional[Sequence[Order]] = None
    ) -> Result[List[AdvancedRoom]]:
        query = select_advanced_rooms_query(
            sessionid=sessionid, find_userid=sessionid, order=order
        )
        return await self._many("get_rooms_list", query, AdvancedRoom)

    async def get_rooms_notification(self, sessionid: str) -> Result[List[RoomNotification]]:
        query = select_rooms_notification(sessionid)
        return await self._many("get_rooms_notification", query, RoomNotification)

    async def create_room(self, id: str, senderid: str, receiverid: str) -> Result[Room]:
        query = compile_insert(
            "rooms", ["id", "senderid", "receiverid"], [id, senderid, receiverid]
        )
        return await self._one("create_room", query, Room)

    async def delete_room(self, id: str) -> Result[Room]:
        query = compile_delete("rooms", [[Where("id", id)]], returning=True)
        return await self._one("delete_room", query, Room)

    async def rooms_detail_handler(
        self, method: Method, type: str, roomid: str, userid: Any = UNSET
    ) -> Result[bool]:
        """
        Pin or disable a room for ``userid``.

        Deleting without a ``userid`` clears the marker for every member.
        """
        if method == "post" and userid is UNSET:
            raise InvalidParameter("rooms_detail_handler needs a userid to insert.")
        return await self._toggle(
            "rooms_detail_handler",
            method,
            "roomsdetail",
            [Where("type", type), Where("roomid", roomid), Where("userid", userid)],
            {"type": type, "roomid": roomid, "userid": userid},
            f"roomsdetail:{type}:{roomid}:{userid}",
        )

    async def rooms_snooze_handler(
        self, method: Method, roomid: str, userid: str, type: Any = UNSET
    ) -> Result[Any]:
        """'post' sets (or replaces) the snooze, 'delete' removes it (Ok(False) if none)."""
        _check_method(method)
        key = [Where("roomid", roomid), Where("userid", userid)]
        try:
            async with self.transaction() as conn:
                await self._lock(conn, f"roomssnooze:{roomid}:{userid}")
                if method == "delete":
                    rows = await self._fetch(
                        compile_delete("roomssnooze", [key], returning=True)
                    )
                    return Ok(bool(rows))
                if type is UNSET:
                    raise InvalidParameter("rooms_snooze_handler needs a snooze type.")
                await self._fetch(compile_delete("roomssnooze", [key]))
                row = await self._fetchrow(compile_insert(
                    "roomssnooze", ["type", "roomid", "userid"], [type, roomid, userid]
                ))
                return Ok(RoomsSnooze.model_validate(dict(row)))
        except EXECUTION_ERRORS as e:
            return self._err("rooms_snooze_handler", e)

    async def update_seen(self, roomid: str, sessionid: str) -> Result[List[Message]]:
        """Mark the other member's unseen messages in the room as seen."""
        query = compile_update(
            "messages",
            ["seen"],
            [True],
            [[
                Where("roomid", roomid),
                Where("senderid", sessionid, Operator.NE),
                Where("seen", False),
            ]],
        )
        return await self._many("update_seen", query, Message)

    # --- Messages ---
    async def get_message(self, id: int) -> Result[AdvancedMessage]:
        query = compile_select("advancedmessages", where=[[Where("id", id)]])
        return await self._one("get_message", query, AdvancedMessage)

    async def get_messages_list(
        self,
        roomid: str,
        sessionid: Any = UNSET,
        cursor: Any = UNSET,
        pagination: Optional[OffsetPagination] = None,
    ) -> Result[List[AdvancedMessage]]:
        query = select_messages_query(
            roomid=roomid, sessionid=sessionid, cursor=cursor, pagination=pagination
        )
        return await self._many("get_messages_list", query, AdvancedMessage)

    async def get_messages_list_search(
        self,
        sessionid: str,
        query: str = "",
        cursor: Optional[int] = None,
        pagination: Optional[OffsetPagination] = None,
    ) -> Result[List[AdvancedMessage]]:
        compiled = select_messages_list_search(
            sessionid=sessionid, query=query, cursor=cursor, pagination=pagination
        )
        return await self._many("get_messages_list_search", compiled, AdvancedMessage)

    async def get_messagesdetail(
        self, type: str, messageid: int, userid: str
    ) -> Result[MessagesDetail]:
        query = compile_select("messagesdetail", where=[[
            Where("type", type), Where("messageid", messageid), Where("userid", userid)
        ]])
        return await self._one("get_messagesdetail", query, MessagesDetail)

    async def create_message(
        self, roomid: str, senderid: str, content: str, parentid: Optional[int] = None
    ) -> Result[AdvancedMessage]:
        query = compile_insert(
            "messages",
            ["roomid", "senderid", "content", "parentid"],
            [roomid, senderid, content, parentid],
        )
        try:
            row = await self._fetchrow(query)
        except EXECUTION_ERRORS as e:
            return self._err("create_message", e)
        return await self.get_message(row["id"])

    async def messages_detail_handler(
        self,
        method: Method,
        type: Literal["react", "disable"],
        messageid: int,
        userid: str,
        content: str = "",
    ) -> Result[bool]:
        """
        Add, change or remove a reaction ('react') or hide a message for one
        user ('disable'). Posting a react that already exists replaces its
        content.
        """
        _check_method(method)
        if type not in ("react", "disable"):
            raise InvalidParameter(f"Unknown message detail type {type!r}")
        key = [Where("type", type), Where("messageid", messageid), Where("userid", userid)]
        try:
            async with self.transaction() as conn:
                await self._lock(conn, f"messagesdetail:{type}:{messageid}:{userid}")
                row = await self._fetchrow(compile_select("messagesdetail", where=[key]))
                if method == "delete":
                    if row is None:
                        return Ok(False)
                    await self._fetch(compile_delete("messagesdetail", [key]))
                    return Ok(True)
                if row is None:
                    await self._fetchrow(compile_insert(
                        "messagesdetail",
                        ["type", "messageid", "userid", "content"],
                        [type, messageid, userid, content],
                    ))
                    return Ok(True)
                if type == "react" and row["content"] != content:
                    await self._fetchrow(
                        compile_update("messagesdetail", ["content"], [content], [key])
                    )
                    return Ok(True)
                return Ok(False)
        except EXECUTION_ERRORS as e:
            return self._err("messages_detail_handler", e)

    async def messages_media_handler(
        self, type: str, messageid: int, url: str, width: int, height: int
    ) -> Result[AdvancedMessage]:
        query = compile_insert(
            "messagesmedia",
            ["type", "messageid", "url", "width", "height"],
            [type, messageid, url, width, height],
        )
        try:
            await self._fetchrow(query)
        except EXECUTION_ERRORS as e:
            return self._err("messages_media_handler", e)
        return await self.get_message(messageid)

    async def send_message(
        self,
        roomid: str,
        senderid: str,
        receiverid: str,
        content: str,
        parentid: Optional[int] = None,
        media: Optional[Mapping[str, Any]] = None,
    ) -> Result[AdvancedMessage]:
        """
        Deliver one chat message in a single transaction.

        Creates the room if needed, re-enables it for both members, inserts
        the message and its optional media (``type``, ``url``, ``width``,
        ``height``), then returns the joined message.
        """
        try:
            async with self.transaction() as conn:
                await self._lock(conn, f"rooms:{roomid}")
                room = await self._fetchrow(
                    compile_select("rooms", where=[[Where("id", roomid)]])
                )
                if room is None:
                    await self._fetchrow(compile_insert(
                        "rooms",
                        ["id", "senderid", "receiverid"],
                        [roomid, senderid, receiverid],
                    ))
                await self._fetch(compile_delete(
                    "roomsdetail", [[Where("type", "disable"), Where("roomid", roomid)]]
                ))
                message = await self._fetchrow(compile_insert(
                    "messages",
                    ["roomid", "senderid", "content", "parentid"],
                    [roomid, senderid, content, parentid],
                ))
                if media:
                    await self._fetchrow(compile_insert(
                        "messagesmedia",
                        ["type", "messageid", "url", "width", "height"],
                        [media["type"], message["id"], media["url"],
                         media["width"], media["height"]],
                    ))
        except EXECUTION_ERRORS as e:
            return self._err("send_message", e)
        self._logger.info(f"Message {message['id']} sent in room '{roomid}'.")
        return await self.get_message(message["id"])
