# tests/database_implementations/test_dao.py

import asyncpg
import pytest

from social_repository.base.exceptions import (
    DAOReleasedError,
    EmptyUpdate,
    InvalidMethod,
    InvalidParameter,
    KeyAlreadyExistsException,
)
from social_repository.base.result import Err, NotFound, Ok
from social_repository.db_implementations.postgresql_dao import PostgresDAO, extract_hashtags
from social_repository.models import AdvancedMessage, AdvancedPost, AdvancedUser


@pytest.fixture
def dao(fake_pool, logger):
    return PostgresDAO(fake_pool, logger)


def statements(conn, kind=None):
    return [sql for k, sql, _ in conn.calls if kind is None or k == kind]


# --- Lifecycle ---
async def test_connection_is_acquired_lazily_and_released_once(dao, fake_pool, make_user_row):
    assert fake_pool.acquired == 0
    fake_pool.conn.responses = [make_user_row()]
    await dao.get_user("alice")
    await dao.get_user("alice")
    assert fake_pool.acquired == 1

    await dao.release()
    await dao.release()
    assert fake_pool.released == 1
    assert dao.released


async def test_released_dao_refuses_work(dao):
    await dao.release()
    with pytest.raises(DAOReleasedError):
        await dao.get_user("alice")


async def test_context_manager(fake_pool, logger):
    async with PostgresDAO(fake_pool, logger) as dao:
        assert fake_pool.acquired == 1
    assert dao.released
    assert fake_pool.released == 1


async def test_default_logger(fake_pool):
    dao = PostgresDAO(fake_pool)
    fake_pool.conn.responses = [None]
    assert isinstance(await dao.get_user("nobody"), NotFound)


# --- Results ---
async def test_get_user_ok(dao, fake_pool, make_user_row):
    fake_pool.conn.responses = [make_user_row(_count={"Followers": 2, "Followings": 0})]
    result = await dao.get_user("alice")
    assert isinstance(result, Ok)
    assert isinstance(result.value, AdvancedUser)
    assert result.value.count == {"Followers": 2, "Followings": 0}
    _, sql, args = fake_pool.conn.calls[0]
    assert '"advancedusers"' in sql
    assert args == ("alice",)


async def test_login_checks_password_against_users_table(dao, fake_pool, make_user_row):
    fake_pool.conn.responses = [{"id": "alice"}, make_user_row()]
    result = await dao.get_user("alice", password="pw")
    user = result.unwrap()
    assert user.id == "alice"
    assert "password" not in user.model_dump()

    (_, login_sql, login_args), (_, user_sql, user_args) = fake_pool.conn.calls
    assert '"users"' in login_sql
    assert '"password" = $2' in login_sql
    assert login_args == ("alice", "pw")
    assert '"advancedusers"' in user_sql
    assert "password" not in user_sql
    assert user_args == ("alice",)


async def test_login_with_wrong_password(dao, fake_pool):
    fake_pool.conn.responses = [None]
    result = await dao.get_user("alice", password="nope")
    assert isinstance(result, NotFound)
    assert len(fake_pool.conn.calls) == 1


async def test_get_user_not_found(dao, fake_pool):
    fake_pool.conn.responses = [None]
    result = await dao.get_user("ghost")
    assert isinstance(result, NotFound)
    assert not result.ok


async def test_execution_error_becomes_err(dao, fake_pool):
    fake_pool.conn.responses = [ConnectionResetError("connection lost")]
    result = await dao.get_post_list(userid="alice")
    assert isinstance(result, Err)
    assert isinstance(result.cause, ConnectionResetError)
    assert "get_post_list" in result.context
    assert '"advancedpost"' in result.context


async def test_unique_violation_becomes_key_exists(dao, fake_pool):
    fake_pool.conn.responses = [asyncpg.UniqueViolationError("duplicate key")]
    result = await dao.create_user("alice", "pw", "Alice", "/a.png")
    assert isinstance(result, Err)
    assert isinstance(result.cause, KeyAlreadyExistsException)
    assert isinstance(result.cause.__cause__, asyncpg.UniqueViolationError)


async def test_construction_errors_are_raised_before_sql(dao, fake_pool):
    with pytest.raises(EmptyUpdate):
        await dao.update_user("alice")
    with pytest.raises(InvalidMethod):
        await dao.follow_handler("put", "alice", "bob")
    with pytest.raises(InvalidParameter):
        await dao.views_handler(1, key="likes")
    with pytest.raises(InvalidParameter):
        await dao.reaction_handler("post", "Like", "alice", 1)
    with pytest.raises(InvalidParameter):
        await dao.rooms_detail_handler("post", "pin", "alice-bob")
    assert fake_pool.conn.calls == []


# --- Users ---
async def test_user_page(dao, fake_pool, make_user_row):
    fake_pool.conn.responses = [[make_user_row(f"user{i}") for i in range(5)]]
    result = await dao.get_user_page(q="user", cursor="user1", size=2)
    page = result.unwrap()
    assert [u.id for u in page.items] == ["user2", "user3"]
    assert page.next_cursor == "user3"
    _, _, args = fake_pool.conn.calls[0]
    assert args == ("%user%", "%user%")


async def test_update_user_refetches(dao, fake_pool, make_user_row):
    fake_pool.conn.responses = [{"id": "alice"}, make_user_row(desc="hi")]
    result = await dao.update_user("alice", desc="hi")
    assert result.unwrap().desc == "hi"
    assert statements(fake_pool.conn)[0].startswith("UPDATE")


async def test_update_missing_user(dao, fake_pool):
    fake_pool.conn.responses = [None]
    assert isinstance(await dao.update_user("ghost", desc="x"), NotFound)


# --- Toggles ---
async def test_follow_inserts_when_absent(dao, fake_pool, make_user_row):
    fake_pool.conn.responses = [None, {"id": 1}, make_user_row("bob")]
    result = await dao.follow_handler("post", "alice", "bob")
    assert result.unwrap().id == "bob"

    sql = statements(fake_pool.conn)
    assert "pg_advisory_xact_lock" in sql[0]
    assert fake_pool.conn.calls[0][2] == ("follow:alice:bob",)
    assert sql[1].startswith('SELECT\n\t*\nFROM\n\t"follow"')
    assert sql[2].startswith('INSERT INTO "follow" ("source", "target")')
    assert fake_pool.conn.commits == 1


async def test_follow_is_idempotent(dao, fake_pool, make_user_row):
    fake_pool.conn.responses = [{"id": 1}, make_user_row("bob")]
    await dao.follow_handler("post", "alice", "bob")
    assert not any(s.startswith("INSERT") for s in statements(fake_pool.conn))


async def test_unfollow_deletes_when_present(dao, fake_pool, make_user_row):
    fake_pool.conn.responses = [{"id": 1}, [], make_user_row("bob")]
    await dao.follow_handler("delete", "alice", "bob")
    assert any(s.startswith("DELETE FROM") for s in statements(fake_pool.conn))


async def test_failed_toggle_rolls_back(dao, fake_pool):
    fake_pool.conn.responses = [None, ConnectionResetError("lost")]
    result = await dao.follow_handler("post", "alice", "bob")
    assert isinstance(result, Err)
    assert fake_pool.conn.rollbacks == 1
    assert fake_pool.conn.commits == 0


async def test_reaction_on_post_matches_null_comment(dao, fake_pool, make_post_row):
    fake_pool.conn.responses = [None, {"id": 1}, make_post_row(Hearts=[{"id": "alice"}])]
    result = await dao.reaction_handler("post", "Heart", "alice", 1)
    post = result.unwrap()
    assert isinstance(post, AdvancedPost)
    assert [h.id for h in post.Hearts] == ["alice"]
    select_sql = statements(fake_pool.conn)[1]
    assert '"commentid" is null' in select_sql


async def test_rooms_detail_delete_for_everyone(dao, fake_pool):
    fake_pool.conn.responses = [{"id": 1}, []]
    result = await dao.rooms_detail_handler("delete", "disable", "alice-bob")
    assert result == Ok(True)
    _, sql, args = fake_pool.conn.calls[-1]
    assert sql.startswith('DELETE FROM\n\t"roomsdetail"')
    assert '"userid"' not in sql
    assert args == ("disable", "alice-bob")


async def test_rooms_detail_no_change(dao, fake_pool):
    fake_pool.conn.responses = [None]
    result = await dao.rooms_detail_handler("delete", "pin", "alice-bob", "alice")
    assert result == Ok(False)


async def test_rooms_snooze_replaces_existing(dao, fake_pool):
    fake_pool.conn.responses = [[], {"id": 1, "type": "8h", "userid": "alice", "roomid": "alice-bob"}]
    result = await dao.rooms_snooze_handler("post", "alice-bob", "alice", "8h")
    assert result.unwrap().type == "8h"
    sql = statements(fake_pool.conn)
    assert sql[1].startswith('DELETE FROM\n\t"roomssnooze"')
    assert sql[2].startswith('INSERT INTO "roomssnooze"')


async def test_rooms_snooze_delete_reports_change(dao, fake_pool):
    fake_pool.conn.responses = [[]]
    assert await dao.rooms_snooze_handler("delete", "alice-bob", "alice") == Ok(False)


# --- Views ---
async def test_first_view_creates_counter_row_with_one(dao, fake_pool, make_post_row):
    fake_pool.conn.responses = [None, {"postid": 1}, make_post_row()]
    await dao.views_handler(1, "detailexpands")
    _, update_sql, update_args = fake_pool.conn.calls[1]
    assert '"detailexpands" = "detailexpands" + $1' in update_sql
    assert update_args == (1, 1)
    _, insert_sql, insert_args = fake_pool.conn.calls[2]
    assert insert_sql.startswith('INSERT INTO "views"')
    assert insert_args == (1, 0, 0, 1, 0, 0)


async def test_counter_row_on_creation_path_is_zero(dao, fake_pool, make_post_row):
    fake_pool.conn.responses = [None, {"postid": 1}, make_post_row()]
    await dao.views_handler(1, create=True)
    assert fake_pool.conn.calls[2][2] == (1, 0, 0, 0, 0, 0)


async def test_existing_counter_is_incremented(dao, fake_pool, make_post_row):
    fake_pool.conn.responses = [{"postid": 1, "impressions": 4}, make_post_row()]
    await dao.views_handler(1)
    assert not any(s.startswith("INSERT") for s in statements(fake_pool.conn))


# --- Hashtags ---
def test_extract_hashtags():
    assert extract_hashtags("#Python rocks #python (#asyncpg) #sql]") == ["Python", "asyncpg", "sql"]
    assert extract_hashtags("") == []


async def test_hashtag_handler(dao, fake_pool):
    fake_pool.conn.responses = [
        {"id": 1, "type": "tag", "title": "python", "count": 3, "weight": 1},
        None,
        {"id": 2, "type": "tag", "title": "new_tag", "count": 1, "weight": 1},
    ]
    result = await dao.hashtag_handler("#python #new_tag")
    assert [h.title for h in result.unwrap()] == ["python", "new_tag"]
    _, sql, args = [c for c in fake_pool.conn.calls if c[0] != "execute"][1]
    assert '"title" ilike $3' in sql
    assert args == (1, "tag", "new\\_tag")


async def test_hashtag_locks_taken_up_front_in_sorted_order(dao, fake_pool):
    fake_pool.conn.responses = [
        {"id": 1, "type": "tag", "title": "zeta", "count": 2, "weight": 1},
        {"id": 2, "type": "tag", "title": "Alpha", "count": 2, "weight": 1},
    ]
    await dao.hashtag_handler("#zeta #Alpha")

    kinds = [kind for kind, _, _ in fake_pool.conn.calls]
    assert kinds[:2] == ["execute", "execute"]
    assert "execute" not in kinds[2:]
    locks = [args for kind, _, args in fake_pool.conn.calls if kind == "execute"]
    assert locks == [("hashtags:tag:alpha",), ("hashtags:tag:zeta",)]


# --- Posts ---
async def test_create_post_runs_in_one_transaction(dao, fake_pool, make_post_row):
    fake_pool.conn.responses = [
        {"postid": 9},                       # insert post
        None,                                # views update misses
        {"postid": 9},                       # views insert
        None,                                # hashtag update misses
        {"id": 1, "title": "hello"},         # hashtag insert
        make_post_row(9, content="#hello"),  # refetch
    ]
    result = await dao.create_post("alice", "#hello")
    assert result.unwrap().postid == 9
    assert fake_pool.conn.transactions == 1
    assert fake_pool.conn.commits == 1
    inserts = [s for s in statements(fake_pool.conn) if s.startswith("INSERT")]
    assert [s.split()[2] for s in inserts] == ['"post"', '"views"', '"hashtags"']


async def test_bookmarks(dao, fake_pool):
    fake_pool.conn.responses = [[]]
    assert await dao.get_bookmark_post_list("alice") == Ok([])
    _, sql, args = fake_pool.conn.calls[0]
    assert '"Bookmarks" @> $1::jsonb' in sql
    assert args == ([{"id": "alice"}],)


async def test_delete_post(dao, fake_pool):
    fake_pool.conn.responses = [None]
    result = await dao.delete_post(3, "alice")
    assert isinstance(result, NotFound)
    assert fake_pool.conn.calls[0][2] == (3, "alice")


# --- Messages ---
async def test_send_message_creates_room_and_media(dao, fake_pool, make_message_row):
    fake_pool.conn.responses = [
        None,                                              # room lookup
        {"id": "alice-bob"},                               # room insert
        [],                                                # re-enable room
        {"id": 7},                                         # message insert
        {"id": 1},                                         # media insert
        make_message_row(7, Media={"id": 1, "type": "image", "url": "/m.png",
                                   "width": 10, "height": 20}),
    ]
    result = await dao.send_message(
        "alice-bob", "alice", "bob", "hi",
        media={"type": "image", "url": "/m.png", "width": 10, "height": 20},
    )
    message = result.unwrap()
    assert isinstance(message, AdvancedMessage)
    assert message.Media.url == "/m.png"

    sql = [s for s in statements(fake_pool.conn) if "pg_advisory" not in s]
    assert sql[1].startswith('INSERT INTO "rooms"')
    assert sql[2].startswith('DELETE FROM\n\t"roomsdetail"')
    assert sql[3].startswith('INSERT INTO "messages"')
    assert sql[4].startswith('INSERT INTO "messagesmedia"')
    assert fake_pool.conn.commits == 1


async def test_send_message_existing_room(dao, fake_pool, make_message_row):
    fake_pool.conn.responses = [{"id": "alice-bob"}, [], {"id": 8}, make_message_row(8)]
    await dao.send_message("alice-bob", "alice", "bob", "again")
    assert not any(s.startswith('INSERT INTO "rooms"') for s in statements(fake_pool.conn))


async def test_message_react_changes_content(dao, fake_pool):
    fake_pool.conn.responses = [{"id": 1, "content": "👍"}, {"id": 1}]
    result = await dao.messages_detail_handler("post", "react", 7, "alice", "❤️")
    assert result == Ok(True)
    assert statements(fake_pool.conn)[-1].startswith('UPDATE\n\t"messagesdetail"')


async def test_message_react_same_content_is_no_change(dao, fake_pool):
    fake_pool.conn.responses = [{"id": 1, "content": "👍"}]
    assert await dao.messages_detail_handler("post", "react", 7, "alice", "👍") == Ok(False)


async def test_message_disable(dao, fake_pool):
    fake_pool.conn.responses = [None, {"id": 1}]
    assert await dao.messages_detail_handler("post", "disable", 7, "alice") == Ok(True)
    with pytest.raises(InvalidParameter):
        await dao.messages_detail_handler("post", "pin", 7, "alice")


async def test_update_seen(dao, fake_pool):
    fake_pool.conn.responses = [[]]
    await dao.update_seen("alice-bob", "alice")
    _, sql, args = fake_pool.conn.calls[0]
    assert '"senderid" <> $3' in sql
    assert args == (True, "alice-bob", "alice", False)
