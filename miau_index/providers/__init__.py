"""Anime catalog providers."""

from .anilist import AniListProvider
from .base import AnimeProvider, HttpProvider, ProviderRegistry
from .jikan import JikanProvider
from .kitsu import KitsuProvider
from .myanimelist import MyAnimeListProvider

__all__ = [
    "AniListProvider",
    "AnimeProvider",
    "HttpProvider",
    "JikanProvider",
    "KitsuProvider",
    "MyAnimeListProvider",
    "ProviderRegistry",
]
