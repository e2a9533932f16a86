"""Tests for merging per-source anime records."""

import asyncio
import dataclasses
import time
from datetime import datetime

import pytest

from miau_index.errors import NotFoundError, ProviderError
from miau_index.models import DataSource, ExternalId, UnificationOptions
from miau_index.providers import ProviderRegistry
from miau_index.unification import (
    AnimeUnificationService,
    merge_array_fields,
    select_best_value,
    select_synopsis,
    unify_anime,
)

ANILIST_ID = ExternalId(DataSource.ANILIST, "154587")
KITSU_ID = ExternalId(DataSource.KITSU, "46474")


@pytest.fixture
def anilist_anime(anime_factory, rating_factory):
    return anime_factory(
        id="from-anilist",
        episodes=28,
        synopsis="Short synopsis.",
        genres=["Fantasy", "Adventure"],
        ratings=[rating_factory(DataSource.ANILIST, 9.1)],
    )


@pytest.fixture
def kitsu_anime(anime_factory, rating_factory):
    return anime_factory(
        id="from-kitsu",
        english="Frieren",
        source=DataSource.KITSU,
        external_id="46474",
        duration=24,
        synopsis="A much longer synopsis about an elf mage.",
        genres=["Drama", "Fantasy"],
        ratings=[rating_factory(DataSource.KITSU, 8.9)],
    )


# ============================================================================
# Unit Tests - Field Selection
# ============================================================================


@pytest.mark.unit
class TestFieldSelection:
    def test_first_defined_value_wins(self):
        assert select_best_value([None, 24, 25]) == 24
        assert select_best_value([0, 24]) == 0
        assert select_best_value([None, None]) is None

    def test_preferred_sources_do_not_reorder(self):
        assert select_best_value(["a", "b"], [DataSource.KITSU, DataSource.ANILIST]) == "a"

    def test_longest_synopsis(self):
        assert select_synopsis(["short", None, "the longest one", ""]) == "the longest one"
        assert select_synopsis(["same", "tie!"]) == "same"
        assert select_synopsis([None, ""]) is None

    def test_merge_array_fields(self):
        merged = merge_array_fields([["Fantasy", "Adventure"], ["Drama", "Fantasy"], []])
        assert merged == ["Adventure", "Drama", "Fantasy"]

    def test_merge_is_case_sensitive(self):
        assert merge_array_fields([["Comedy"], ["comedy"]]) == ["Comedy", "comedy"]


# ============================================================================
# Unit Tests - unify_anime
# ============================================================================


@pytest.mark.unit
class TestUnifyAnime:
    def test_merges_sources(self, anilist_anime, kitsu_anime):
        unified = unify_anime([anilist_anime, kitsu_anime])

        assert unified.id == "from-anilist"
        assert unified.title.english == "Frieren: Beyond Journey's End"
        assert unified.episodes == 28
        assert unified.duration == 24
        assert unified.synopsis == "A much longer synopsis about an elf mage."
        assert unified.genres == ["Adventure", "Drama", "Fantasy"]
        assert [r.source for r in unified.ratings] == [DataSource.ANILIST, DataSource.KITSU]
        assert [e.source for e in unified.external_ids] == [DataSource.ANILIST, DataSource.KITSU]

    def test_inputs_untouched(self, anilist_anime, kitsu_anime):
        unify_anime([anilist_anime, kitsu_anime])

        assert anilist_anime.duration is None
        assert anilist_anime.genres == ["Fantasy", "Adventure"]
        assert len(anilist_anime.external_ids) == 1

    def test_without_array_merge(self, anilist_anime, kitsu_anime):
        unified = unify_anime([anilist_anime, kitsu_anime], UnificationOptions(merge_arrays=False))
        assert unified.genres == ["Fantasy", "Adventure"]

    def test_no_sources(self):
        with pytest.raises(NotFoundError):
            unify_anime([])


# ============================================================================
# AnimeUnificationService
# ============================================================================


class TestFetchAndUnify:
    @pytest.fixture
    def service(self, anime_repository, fake_provider, anilist_anime, kitsu_anime):
        registry = ProviderRegistry()
        registry.register(fake_provider(DataSource.ANILIST, animes={"154587": anilist_anime}))
        registry.register(fake_provider(DataSource.KITSU, animes={"46474": kitsu_anime}))
        return AnimeUnificationService(anime_repository, registry)

    def test_unifies_and_persists(self, service, anime_repository):
        anime = asyncio.run(service.fetch_and_unify([ANILIST_ID, KITSU_ID]))

        assert anime.duration == 24
        assert asyncio.run(anime_repository.find_by_id(anime.id)) is anime

    def test_skips_unregistered_and_failing_sources(
        self, anime_repository, fake_provider, anilist_anime
    ):
        service = AnimeUnificationService(anime_repository)
        service.register_provider(fake_provider(DataSource.ANILIST, animes={"154587": anilist_anime}))
        service.register_provider(
            fake_provider(DataSource.KITSU, error=ProviderError("KITSU", "down"))
        )

        anime = asyncio.run(
            service.fetch_and_unify(
                [ANILIST_ID, KITSU_ID, ExternalId(DataSource.ANIDB, "17617")]
            )
        )

        assert [e.source for e in anime.external_ids] == [DataSource.ANILIST]

    def test_nothing_found(self, service):
        with pytest.raises(NotFoundError):
            asyncio.run(service.fetch_and_unify([ExternalId(DataSource.ANILIST, "0")]))

    def test_refresh_keeps_identity(self, service, anime_repository, anime_factory):
        stored = anime_factory(id="stored-1", created_at=datetime(2020, 1, 1))
        asyncio.run(anime_repository.save(stored))

        anime = asyncio.run(service.fetch_and_unify([ANILIST_ID, KITSU_ID]))

        assert anime.id == "stored-1"
        assert anime.created_at == datetime(2020, 1, 1)
        assert asyncio.run(anime_repository.count()) == 1


class TestSearchAndUnify:
    def test_groups_by_title(self, anime_repository, fake_provider, anilist_anime, kitsu_anime, anime_factory):
        other = anime_factory(id="other", romaji="Dungeon Meshi", english=None, native=None)
        registry = ProviderRegistry()
        registry.register(fake_provider(DataSource.ANILIST, search_results=[anilist_anime, other]))
        registry.register(fake_provider(DataSource.KITSU, search_results=[kitsu_anime]))
        service = AnimeUnificationService(anime_repository, registry)

        results = asyncio.run(service.search_and_unify("frieren"))

        assert [a.title.romaji for a in results] == ["Sousou no Frieren", "Dungeon Meshi"]
        assert len(results[0].external_ids) == 2
        # Search results are not persisted
        assert asyncio.run(anime_repository.count()) == 0

    def test_failing_provider_is_ignored(self, anime_repository, fake_provider, anilist_anime):
        registry = ProviderRegistry()
        registry.register(fake_provider(DataSource.ANILIST, search_results=[anilist_anime]))
        registry.register(fake_provider(DataSource.KITSU, error=RuntimeError("timeout")))
        service = AnimeUnificationService(anime_repository, registry)

        results = asyncio.run(service.search_and_unify("frieren"))

        assert len(results) == 1

    def test_limit(self, anime_repository, fake_provider, anime_factory):
        animes = [anime_factory(id=str(n), romaji=f"Title {n}") for n in range(5)]
        registry = ProviderRegistry()
        registry.register(fake_provider(DataSource.ANILIST, search_results=animes))
        service = AnimeUnificationService(anime_repository, registry)

        assert len(asyncio.run(service.search_and_unify("title", limit=3))) == 3


# ============================================================================
# Merge Properties
# ============================================================================


def without_sync_times(anime):
    fields = dataclasses.asdict(anime)
    del fields["updated_at"], fields["last_synced_at"]
    return fields


@pytest.mark.unit
class TestMergeProperties:
    def test_unifying_one_source_is_idempotent(self, anilist_anime):
        first = unify_anime([anilist_anime])
        second = unify_anime([anilist_anime])

        assert without_sync_times(first) == without_sync_times(second)

    @pytest.mark.parametrize(
        "a,b",
        [
            (["Fantasy", "Adventure"], ["Drama", "Fantasy"]),
            ([], ["Action"]),
            (["Comedy", "Comedy"], ["comedy"]),
            (["Slice of Life"], []),
        ],
    )
    def test_array_merge_is_commutative(self, a, b):
        forward = merge_array_fields([a, b])
        backward = merge_array_fields([b, a])

        assert set(forward) == set(backward) == set(a) | set(b)
        assert forward == sorted(set(forward))

    def test_source_order_does_not_change_genre_set(self, anilist_anime, kitsu_anime):
        forward = unify_anime([anilist_anime, kitsu_anime])
        backward = unify_anime([kitsu_anime, anilist_anime])

        assert set(forward.genres) == set(backward.genres)

    def test_one_rating_per_scoring_source(self, anilist_anime, kitsu_anime, anime_factory):
        unscored = anime_factory(id="from-mal", source=DataSource.MYANIMELIST, external_id="52991")

        unified = unify_anime([anilist_anime, kitsu_anime, unscored])

        assert len(unified.ratings) == 2
        assert {r.source for r in unified.ratings} == {DataSource.ANILIST, DataSource.KITSU}

    def test_longest_of_three_synopses(self, anime_factory):
        sources = [
            anime_factory(id=str(n), synopsis="x" * length) for n, length in enumerate([12, 50, 30])
        ]
        assert len(unify_anime(sources).synopsis) == 50


class TestThreeSourceScenario:
    def test_fields_come_from_the_source_that_has_them(self, anime_repository, fake_provider, anime_factory):
        synopsis = "s" * 200
        anilist = anime_factory(id="a", native=None, synopsis=synopsis)
        kitsu = anime_factory(
            id="k", native="葬送のフリーレン", source=DataSource.KITSU, external_id="46474"
        )
        mal = anime_factory(
            id="m", native=None, source=DataSource.MYANIMELIST, external_id="52991"
        )
        registry = ProviderRegistry()
        registry.register(fake_provider(DataSource.ANILIST, animes={"154587": anilist}))
        registry.register(fake_provider(DataSource.KITSU, animes={"46474": kitsu}))
        registry.register(fake_provider(DataSource.MYANIMELIST, animes={"52991": mal}))
        service = AnimeUnificationService(anime_repository, registry)

        anime = asyncio.run(
            service.fetch_and_unify(
                [ANILIST_ID, KITSU_ID, ExternalId(DataSource.MYANIMELIST, "52991")]
            )
        )

        assert anime.synopsis == synopsis
        assert anime.title.native == "葬送のフリーレン"
        assert len(anime.external_ids) == 3
        assert {e.id for e in anime.external_ids} == {"154587", "46474", "52991"}


class TestSearchConcurrency:
    def test_providers_are_searched_in_parallel(self, anime_repository, fake_provider, anime_factory):
        registry = ProviderRegistry()
        for source in (DataSource.ANILIST, DataSource.KITSU, DataSource.MYANIMELIST):
            registry.register(
                fake_provider(
                    source,
                    search_results=[anime_factory(id=source.value, source=source)],
                    delay=0.2,
                )
            )
        service = AnimeUnificationService(anime_repository, registry)

        start = time.perf_counter()
        results = asyncio.run(service.search_and_unify("frieren"))
        elapsed = time.perf_counter() - start

        # One after another would take at least 0.6s
        assert elapsed < 0.5
        assert len(results[0].external_ids) == 3
