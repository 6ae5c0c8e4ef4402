"""Tests for category / custom group visibility and custom groups."""

from xtreamsync.database import KeyValueStore
from xtreamsync.models.catalog import Category, ContentKind
from xtreamsync.services.group_service import GroupService
from xtreamsync.services.visibility_service import VisibilityService

SERVER = "srv-1"
LIVE = ContentKind.LIVE


def _cats(*ids):
    return [Category(id=i, name=f"Cat {i}", kind=LIVE) for i in ids]


class TestVisibility:
    def test_unknown_group_is_visible(self, visibility):
        assert visibility.is_visible(SERVER, LIVE, 42) is True

    def test_filter_categories_preserves_order(self, visibility):
        visibility.set_visible(SERVER, LIVE, 2, False)
        assert [c.id for c in visibility.filter_categories(SERVER, LIVE, _cats(3, 2, 1))] == [3, 1]

    def test_kinds_do_not_collide(self, visibility):
        visibility.set_visible(SERVER, LIVE, 5, False)
        assert visibility.is_visible(SERVER, ContentKind.MOVIE, 5) is True
        assert visibility.get_map(SERVER, LIVE) == {"5": False}
        assert visibility.get_map(SERVER, ContentKind.MOVIE) == {}

    def test_set_all_visible(self, visibility):
        visibility.set_all_visible(SERVER, LIVE, [1, 2, 3], False)
        assert visibility.filter_categories(SERVER, LIVE, _cats(1, 2, 3, 4)) == _cats(4)

    def test_toggle(self, visibility):
        assert visibility.toggle(SERVER, LIVE, 1) is False
        assert visibility.toggle(SERVER, LIVE, 1) is True

    def test_toggle_one_at_a_time_hides_the_rest(self, visibility):
        visibility.set_all_visible(SERVER, LIVE, [1, 2, 3], False)
        assert visibility.toggle(SERVER, LIVE, 2, all_ids=[1, 2, 3], one_at_a_time=True) is True
        assert visibility.visible_category_ids(SERVER, LIVE, _cats(1, 2, 3)) == {2}
        # Hiding the shown one leaves everything hidden.
        assert visibility.toggle(SERVER, LIVE, 2, all_ids=[1, 2, 3], one_at_a_time=True) is False
        assert visibility.visible_category_ids(SERVER, LIVE, _cats(1, 2, 3)) == set()

    def test_custom_group_ids(self, visibility, groups):
        kept = groups.create(SERVER, "Kept", LIVE, [1])
        hidden = groups.create(SERVER, "Hidden", LIVE, [2])
        visibility.set_visible(SERVER, LIVE, hidden.id, False)
        assert visibility.visible_groups(SERVER, LIVE, groups.list_groups(SERVER)) == [kept]

    def test_persisted(self, visibility, db_path):
        visibility.set_visible(SERVER, LIVE, 9, False)
        reloaded = VisibilityService(KeyValueStore(db_path, "group_visibility"))
        reloaded.load()
        assert reloaded.is_visible(SERVER, LIVE, 9) is False


class TestGroups:
    def test_create_dedupes_ids(self, groups):
        group = groups.create(SERVER, "Mine", LIVE, [3, 3, 4])
        assert group.content_ids == [3, 4]
        assert groups.get(SERVER, group.id) is group

    def test_membership(self, groups):
        group = groups.create(SERVER, "Mine", ContentKind.MOVIE)
        groups.add_content(SERVER, group.id, 7)
        groups.add_content(SERVER, group.id, 7)
        assert group.content_ids == [7]
        assert groups.groups_containing(SERVER, ContentKind.MOVIE, 7) == [group]
        groups.remove_content(SERVER, group.id, 7)
        assert groups.groups_containing(SERVER, ContentKind.MOVIE, 7) == []

    def test_unknown_group(self, groups):
        assert groups.add_content(SERVER, "missing", 1) is None
        assert groups.delete(SERVER, "missing") is False

    def test_list_by_kind_and_reload(self, groups, db_path):
        groups.create(SERVER, "Live group", LIVE)
        groups.create(SERVER, "Movie group", ContentKind.MOVIE)
        reloaded = GroupService(KeyValueStore(db_path, "custom_groups"))
        reloaded.load()
        assert [g.name for g in reloaded.list_groups(SERVER, LIVE)] == ["Live group"]
        assert len(reloaded.list_groups(SERVER)) == 2
