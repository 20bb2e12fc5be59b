from typing import Any, Dict, List

from ..client import Dispatcher


class SpotifyAlbums:
    def __init__(self, api: Dispatcher):
        self.api = api

    def get_album(self, album_id: str, market: str = "") -> Dict[str, Any]:
        """Catalog info for a single album.

        market is an ISO 3166-1 alpha-2 country code; the user's own country
        takes priority when the token belongs to a user.
        """
        return self.api.auth_get(f"/albums/{album_id}", {"market": market})

    def get_albums(self, ids: List[str], market: str = "") -> Dict[str, Any]:
        return self.api.auth_get("/albums", {"ids": ids, "market": market})

    def get_album_tracks(self, album_id: str, market: str = "", limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return self.api.auth_get(
            f"/albums/{album_id}/tracks",
            {"market": market, "limit": limit, "offset": offset},
        )
