from typing import Any, Dict, List, Optional

from ..client import Dispatcher

ALL_ALBUM_GROUPS = ["album", "single", "appears_on", "compilation"]


class SpotifyArtists:
    def __init__(self, api: Dispatcher):
        self.api = api

    def get_artist(self, artist_id: str) -> Dict[str, Any]:
        return self.api.auth_get(f"/artists/{artist_id}")

    def get_artists(self, ids: List[str]) -> Dict[str, Any]:
        return self.api.auth_get("/artists", {"ids": ids})

    def get_albums(
        self,
        artist_id: str,
        include_groups: Optional[List[str]] = None,
        market: str = "",
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Albums by an artist, filtered to include_groups (all groups by default)."""
        return self.api.auth_get(
            f"/artists/{artist_id}/albums",
            {
                "include_groups": include_groups or ALL_ALBUM_GROUPS,
                "market": market,
                "limit": limit,
                "offset": offset,
            },
        )

    def get_top_tracks(self, artist_id: str, market: str = "") -> Dict[str, Any]:
        return self.api.auth_get(f"/artists/{artist_id}/top-tracks", {"market": market})

    def get_related_artists(self, artist_id: str) -> Dict[str, Any]:
        return self.api.auth_get(f"/artists/{artist_id}/related-artists")
