from typing import Any, Dict, List

from ..client import Dispatcher


class SpotifyPlaylists:
    def __init__(self, api: Dispatcher):
        self.api = api

    def get_playlist(self, playlist_id: str, market: str = "", fields: str = "") -> Dict[str, Any]:
        return self.api.auth_get(f"/playlists/{playlist_id}", {"market": market, "fields": fields})

    def get_playlist_items(self, playlist_id: str, market: str = "", limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get(
            f"/playlists/{playlist_id}/tracks",
            {"market": market, "limit": limit, "offset": offset, "additional_types": "track"},
        )

    def check_if_followed_by(self, playlist_id: str, ids: List[str]) -> List[bool]:
        """Whether each of the given user ids follows the playlist."""
        return self.api.auth_get(f"/playlists/{playlist_id}/followers/contains", {"ids": ids})

    def follow(self, playlist_id: str, public: bool = True) -> None:
        self.api.auth_put(f"/playlists/{playlist_id}/followers", {"public": public})

    def unfollow(self, playlist_id: str) -> None:
        self.api.auth_delete(f"/playlists/{playlist_id}/followers")
