"""Unit tests for torrent deduplication."""

from miau_index.dedup import dedup_key, deduplicate_torrents


class TestDedupKey:
    def test_prefers_info_hash(self, torrent_factory):
        assert dedup_key(torrent_factory(info_hash="b" * 40)) == "b" * 40

    def test_falls_back_to_normalized_title(self, torrent_factory):
        torrent = torrent_factory(info_hash="", title="[Group] Frieren - 01 (1080p)")
        assert dedup_key(torrent) == "group frieren 01 1080p"


class TestDeduplicateTorrents:
    def test_keeps_most_seeded(self, torrent_factory):
        low = torrent_factory(id="low", seeders=10)
        high = torrent_factory(id="high", seeders=90)

        result = deduplicate_torrents([low, high])

        assert [t.id for t in result] == ["high"]

    def test_tie_keeps_first(self, torrent_factory):
        first = torrent_factory(id="first", seeders=10)
        second = torrent_factory(id="second", seeders=10)

        assert [t.id for t in deduplicate_torrents([first, second])] == ["first"]

    def test_sorted_by_seeders(self, torrent_factory):
        torrents = [
            torrent_factory(id="a", seeders=5, info_hash="1" * 40),
            torrent_factory(id="b", seeders=50, info_hash="2" * 40),
            torrent_factory(id="c", seeders=20, info_hash="3" * 40),
        ]

        assert [t.id for t in deduplicate_torrents(torrents)] == ["b", "c", "a"]

    def test_title_collision_without_hash(self, torrent_factory):
        a = torrent_factory(id="a", info_hash="", title="Frieren - 01 [1080p]", seeders=3)
        b = torrent_factory(id="b", info_hash="", title="frieren 01 1080p", seeders=7)

        assert [t.id for t in deduplicate_torrents([a, b])] == ["b"]

    def test_empty(self):
        assert deduplicate_torrents([]) == []

    def test_idempotent(self, torrent_factory):
        torrents = [
            torrent_factory(id="a", seeders=5, info_hash="1" * 40),
            torrent_factory(id="b", seeders=50, info_hash="1" * 40),
            torrent_factory(id="c", seeders=20, info_hash="3" * 40),
        ]

        once = deduplicate_torrents(torrents)
        assert deduplicate_torrents(once) == once
