# tests/schema/test_views.py

import pytest

from social_repository.schema import views
from social_repository.schema.registry import REGISTRY


@pytest.mark.parametrize("name", list(REGISTRY.views))
def test_view_is_schema_qualified(name):
    sql = REGISTRY.views[name].definition("xclone")
    assert sql.startswith(f'create or replace view "xclone".{name} as')
    assert "public." not in sql


@pytest.mark.parametrize("name", list(REGISTRY.views))
def test_view_emits_every_registered_column(name):
    sql = REGISTRY.views[name].definition("public")
    for column in REGISTRY.views[name].columns:
        assert column in sql


def test_post_view_nests_original_two_levels():
    sql = views.advanced_post("public")
    assert "original_0" in sql
    assert "original_1" in sql
    assert "original_2" not in sql
    assert sql.count('as "Bookmarks"') == 3


def test_aggregates_default_to_empty_arrays():
    sql = views.advanced_users("public")
    assert "coalesce(follower.value, '[]'::jsonb) as \"Followers\"" in sql
    assert "coalesce(following.count, 0)" in sql


def test_schema_name_is_quoted():
    assert '"we""ird".advancedrooms' in views.advanced_rooms('we"ird')
