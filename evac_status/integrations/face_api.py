"""
Client for the upstream face recognition API.

Only the endpoints needed by the evacuation refresh are wrapped: face lists
(with their time-attendance configuration), list items and the detection
search. Every call is blocking; transport timeouts are the only bound.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from ..core.config import settings
from ..core.errors import FaceApiError
from ..schemas.face_api import (
    DetectionsResponse,
    FaceListsResponse,
    ListItem,
    ListItemsResponse,
)

logger = logging.getLogger("face_api")

ModelT = TypeVar("ModelT", bound=BaseModel)


def encode_id_list(ids: Iterable[int]) -> str:
    """Encode ids the way the detection search expects them: ``[2,3]``."""
    return "[" + ",".join(str(int(i)) for i in ids) + "]"


class FaceApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: Tuple[float, float] = (5.0, 60.0),
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        params: dict,
        model: Type[ModelT],
        *,
        empty_on_404: bool = False,
    ) -> ModelT:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise FaceApiError(f"Face API request failed: {exc}", url=url) from exc

        if response.status_code == 404 and empty_on_404:
            return model()
        if response.status_code // 100 != 2:
            raise FaceApiError(
                f"Face API {method} {path} failed: {response.text[:200]}",
                url=url,
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise FaceApiError(f"Face API returned non-JSON body: {exc}", url=url) from exc
        if payload is None:
            return model()
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise FaceApiError(f"Face API returned unexpected payload: {exc}", url=url) from exc

    def list_face_lists(self, limit: int) -> FaceListsResponse:
        """GET /face/lists"""
        return self._request("GET", "/face/lists", {"limit": limit}, FaceListsResponse)

    def list_items(
        self,
        list_id: int,
        offset: int,
        limit: int,
        *,
        order: str = "asc",
        sort_by: str = "name",
    ) -> ListItemsResponse:
        """GET /face/list_items"""
        params = {
            "list_id": list_id,
            "name": "",
            "comment": "",
            "offset": offset,
            "limit": limit,
            "order": order,
            "sort_by": sort_by,
        }
        return self._request("GET", "/face/list_items", params, ListItemsResponse)

    def detections(
        self,
        list_id: Optional[int],
        stream_ids: List[int],
        start_ms: Optional[int],
        end_ms: Optional[int],
        offset: int,
        limit: int,
        *,
        sort_order: str = "asc",
    ) -> DetectionsResponse:
        """POST /face/detections; a 404 means there is nothing to return."""
        params: dict = {"limit": limit, "sort_order": sort_order, "offset": offset}
        if start_ms is not None:
            params["start_date"] = start_ms
        if end_ms is not None:
            params["end_date"] = end_ms
        if list_id is not None:
            params["list_id"] = list_id
        if stream_ids:
            params["analytics_ids"] = encode_id_list(stream_ids)
        return self._request("POST", "/face/detections", params, DetectionsResponse, empty_on_404=True)

    def fetch_all_list_items(self, list_id: int, page_limit: int) -> List[ListItem]:
        """Walk the paginated roster of a list from offset 0."""
        items: List[ListItem] = []
        offset = 0
        while True:
            page = self.list_items(list_id, offset, page_limit)
            data = page.data
            items.extend(data)
            if len(data) < page_limit or not data:
                break
            offset += page_limit
            if page.total is not None and offset >= page.total:
                break
        logger.debug("Fetched %s list items for list_id=%s", len(items), list_id)
        return items

    def close(self) -> None:
        self._session.close()


def build_face_api_client() -> FaceApiClient:
    return FaceApiClient(
        settings.face_api_base_url,
        timeout=(settings.face_api_connect_timeout_sec, settings.face_api_read_timeout_sec),
    )
