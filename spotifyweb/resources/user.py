from typing import Any, Dict, List

from ..client import Dispatcher

TOP_ITEM_TYPES = ("artists", "tracks")
FOLLOW_TYPES = ("artist", "user")


class SpotifyUser:
    """Profile, library, playlists and follow endpoints for the current user."""

    def __init__(self, api: Dispatcher):
        self.api = api

    # -----------------
    # Profile
    # -----------------

    def get_current_profile(self) -> Dict[str, Any]:
        return self.api.auth_get("/me")

    def get_user_profile(self, user_id: str) -> Dict[str, Any]:
        return self.api.auth_get(f"/users/{user_id}")

    def get_top(self, item_type: str, time_range: str = "medium_term", limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        """Top artists or tracks; time_range is short_term, medium_term or long_term."""
        if item_type not in TOP_ITEM_TYPES:
            raise ValueError(f"item_type must be one of {TOP_ITEM_TYPES}, got {item_type!r}")
        return self.api.auth_get(
            f"/me/top/{item_type}",
            {"time_range": time_range, "limit": limit, "offset": offset},
        )

    # -----------------
    # Library
    # -----------------

    def get_saved_albums(self, limit: int = 20, offset: int = 0, market: str = "") -> Dict[str, Any]:
        return self.api.auth_get("/me/albums", {"limit": limit, "offset": offset, "market": market})

    def save_albums(self, ids: List[str]) -> None:
        self.api.auth_put("/me/albums", {"ids": ids})

    def remove_albums(self, ids: List[str]) -> None:
        self.api.auth_delete("/me/albums", {"ids": ids})

    def check_if_albums_saved(self, ids: List[str]) -> List[bool]:
        return self.api.auth_get("/me/albums/contains", {"ids": ids})

    def get_saved_tracks(self, market: str = "", limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get("/me/tracks", {"market": market, "limit": limit, "offset": offset})

    def save_tracks(self, ids: List[str]) -> None:
        self.api.auth_put("/me/tracks", {"ids": ids})

    def remove_tracks(self, ids: List[str]) -> None:
        self.api.auth_delete("/me/tracks", {"ids": ids})

    def check_if_tracks_saved(self, ids: List[str]) -> List[bool]:
        return self.api.auth_get("/me/tracks/contains", {"ids": ids})

    def get_saved_audiobooks(self, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get("/me/audiobooks", {"limit": limit, "offset": offset})

    def save_audiobooks(self, ids: List[str]) -> None:
        self.api.auth_put("/me/audiobooks", query={"ids": ids})

    def remove_audiobooks(self, ids: List[str]) -> None:
        self.api.auth_delete("/me/audiobooks", {"ids": ids})

    def check_if_audiobooks_saved(self, ids: List[str]) -> List[bool]:
        return self.api.auth_get("/me/audiobooks/contains", {"ids": ids})

    def get_saved_episodes(self, market: str = "", limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get("/me/episodes", {"market": market, "limit": limit, "offset": offset})

    def save_episodes(self, ids: List[str]) -> None:
        self.api.auth_put("/me/episodes", {"ids": ids})

    def remove_episodes(self, ids: List[str]) -> None:
        self.api.auth_delete("/me/episodes", body={"ids": ids})

    def check_if_episodes_saved(self, ids: List[str]) -> List[bool]:
        return self.api.auth_get("/me/episodes/contains", {"ids": ids})

    def get_saved_shows(self, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get("/me/shows", {"limit": limit, "offset": offset})

    def save_shows(self, ids: List[str]) -> None:
        self.api.auth_put("/me/shows", query={"ids": ids})

    def remove_shows(self, ids: List[str], market: str = "") -> None:
        self.api.auth_delete("/me/shows", {"ids": ids, "market": market})

    def check_if_shows_saved(self, ids: List[str]) -> List[bool]:
        return self.api.auth_get("/me/shows/contains", {"ids": ids})

    # -----------------
    # Playlists
    # -----------------

    def get_playlists(self, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get("/me/playlists", {"limit": limit, "offset": offset})

    def get_user_playlists(self, user_id: str, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get(f"/users/{user_id}/playlists", {"limit": limit, "offset": offset})

    # -----------------
    # Following
    # -----------------

    def get_followed_artists(self, after: str = "", limit: int = 20) -> Dict[str, Any]:
        return self.api.auth_get("/me/following", {"type": "artist", "after": after, "limit": limit})

    def follow(self, follow_type: str, ids: List[str]) -> None:
        self._check_follow_type(follow_type)
        self.api.auth_put("/me/following", {"ids": ids}, query={"type": follow_type})

    def unfollow(self, follow_type: str, ids: List[str]) -> None:
        self._check_follow_type(follow_type)
        self.api.auth_delete("/me/following", {"type": follow_type, "ids": ids})

    def check_if_follows(self, follow_type: str, ids: List[str]) -> List[bool]:
        self._check_follow_type(follow_type)
        return self.api.auth_get("/me/following/contains", {"type": follow_type, "ids": ids})

    @staticmethod
    def _check_follow_type(follow_type: str) -> None:
        if follow_type not in FOLLOW_TYPES:
            raise ValueError(f"follow type must be one of {FOLLOW_TYPES}, got {follow_type!r}")
