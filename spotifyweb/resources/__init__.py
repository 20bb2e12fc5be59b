"""Thin Web API wrappers. Each one holds only a Dispatcher."""

from .albums import SpotifyAlbums
from .artists import SpotifyArtists
from .playlists import SpotifyPlaylists
from .user import SpotifyUser

__all__ = [
    "SpotifyAlbums",
    "SpotifyArtists",
    "SpotifyPlaylists",
    "SpotifyUser",
]
