"""
FieldWatch VI - Remote Data Gateway
===================================
Thin async request layer over the vegetation-index backend.
Every transport problem is raised as ``TransportFailure``; retries, if any,
belong to the transport, not to the engine.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
from shapely.errors import ShapelyError

from .config import Settings
from .errors import TransportFailure
from .models import Field, HistoricalAnalysisResult, PlaceResult, TileDescriptor, VISnapshot

logger = logging.getLogger(__name__)

NOMINATIM_USER_AGENT = "FieldWatch-CropMonitoring/1.0"

# Errors raised by the model parsers on payloads of the wrong shape
MALFORMED = (AttributeError, KeyError, TypeError, ValueError, ShapelyError)


def resolve_asset_url(asset_ref: str, base_url: str) -> str:
    """
    Resolve an overlay asset reference against the API base URL.

    Args:
        asset_ref: Absolute URL or path relative to the backend
        base_url: Configured API base URL

    Returns:
        Absolute URL; absolute references are returned unchanged
    """
    if asset_ref.startswith("http://") or asset_ref.startswith("https://"):
        return asset_ref
    return f"{base_url.rstrip('/')}/{asset_ref.lstrip('/')}"


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return response.text or None
    if isinstance(payload, dict) and payload.get("detail"):
        detail = payload["detail"]
        return detail if isinstance(detail, str) else json.dumps(detail)
    return None


def _parse_places(items: List[Any]) -> List[PlaceResult]:
    places = []
    for item in items:
        try:
            places.append(PlaceResult(
                display_name=item.get("display_name", ""),
                lat=float(item["lat"]),
                lon=float(item["lon"]),
                type=item.get("type") or "",
                category=item.get("class") or "",
            ))
        except MALFORMED:
            logger.warning("Skipping malformed place result %r", item)
    return places


class RemoteDataGateway:
    """Async client for snapshots, tiles, time series, fields and search."""

    def __init__(self, settings: Settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.api_token:
            headers["Authorization"] = f"Bearer {self.settings.api_token}"
        return headers

    async def _request(self, method: str, url: str,
                       params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None) -> Any:
        """Send one request and return the decoded JSON body."""
        request_headers = self._headers()
        request_headers.update(headers or {})
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.api_base_url,
                timeout=self.settings.request_timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method, url, params=params, headers=request_headers
                )
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise TransportFailure(f"Request to {url} failed", cause=exc) from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.error("%s %s returned %s: %s", method, url,
                         response.status_code, detail)
            raise TransportFailure(
                f"Backend returned HTTP {response.status_code}",
                status_code=response.status_code,
                detail=detail,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportFailure(f"Invalid JSON from {url}", cause=exc) from exc

    def resolve_asset_url(self, asset_ref: str) -> str:
        return resolve_asset_url(asset_ref, self.settings.api_base_url)

    # -------------------------------------------------------------------------
    # Fields
    # -------------------------------------------------------------------------

    async def get_field(self, field_id: str) -> Field:
        payload = await self._request("GET", f"/fields/{field_id}")
        if not isinstance(payload, dict):
            raise TransportFailure("Unexpected field response shape")
        try:
            return Field.from_api(payload)
        except MALFORMED as exc:
            raise TransportFailure("Unexpected field response", cause=exc) from exc

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    async def get_snapshots(self, field_id: str, index_type: str,
                            limit: int) -> List[VISnapshot]:
        """Fetch stored snapshots, unordered as the backend returns them."""
        payload = await self._request(
            "GET",
            f"/vi-analysis/snapshots/{field_id}",
            params={"vi_type": index_type, "limit": limit},
        )
        if not isinstance(payload, list):
            raise TransportFailure("Unexpected snapshots response shape")

        snapshots = []
        for item in payload:
            try:
                snapshots.append(VISnapshot.from_api(item))
            except MALFORMED as exc:
                logger.warning("Skipping malformed snapshot %r: %s", item, exc)
        return snapshots

    async def delete_snapshots(self, field_id: str, index_type: str) -> None:
        await self._request(
            "DELETE",
            f"/vi-analysis/snapshots/{field_id}",
            params={"vi_type": index_type},
        )

    async def analyze_historical(self, field_id: str, index_type: str,
                                 count: int, clear_old: bool = True) -> HistoricalAnalysisResult:
        payload = await self._request(
            "POST",
            f"/vi-analysis/{field_id}/analyze-historical",
            params={
                "vi_type": index_type,
                "count": count,
                "clear_old": "true" if clear_old else "false",
            },
        )
        try:
            return HistoricalAnalysisResult.from_api(payload or {})
        except MALFORMED as exc:
            raise TransportFailure("Unexpected historical analysis response", cause=exc) from exc

    # -------------------------------------------------------------------------
    # Tiles
    # -------------------------------------------------------------------------

    async def get_tile_descriptor(self, index_type: str, start: date, end: date,
                                  aoi: Dict[str, Any], mode: str = "static") -> TileDescriptor:
        """
        Request a raster tile + legend descriptor for a date window.

        Args:
            index_type: Vegetation index code
            start: Window start (inclusive)
            end: Window end (inclusive)
            aoi: Area of interest as a GeoJSON FeatureCollection
            mode: Tile rendering mode

        Returns:
            TileDescriptor, possibly with ``available=False``
        """
        payload = await self._request(
            "GET",
            "/vi/tiles",
            params={
                "vi": index_type,
                "start": start.isoformat(),
                "end": end.isoformat(),
                "aoi_geojson": json.dumps(aoi),
                "mode": mode,
            },
        )
        if not isinstance(payload, dict):
            raise TransportFailure("Unexpected tiles response shape")
        try:
            return TileDescriptor.from_api(payload)
        except MALFORMED as exc:
            raise TransportFailure("Unexpected tiles response", cause=exc) from exc

    # -------------------------------------------------------------------------
    # Time series
    # -------------------------------------------------------------------------

    async def get_timeseries(self, field_id: str, index_type: str, start_date: date,
                             end_date: date, analysis_type: str) -> List[Dict[str, Any]]:
        """Fetch raw time-series samples; the list may be empty."""
        payload = await self._request(
            "GET",
            f"/vi/timeseries/{field_id}",
            params={
                "vi_type": index_type,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "analysis_type": analysis_type,
            },
        )
        if not isinstance(payload, dict):
            raise TransportFailure("Unexpected time-series response shape")
        samples = payload.get("timeseries") or []
        return [s for s in samples if isinstance(s, dict)]

    # -------------------------------------------------------------------------
    # Place search
    # -------------------------------------------------------------------------

    async def search_places(self, query: str) -> List[PlaceResult]:
        payload = await self._request("GET", "/utils/search", params={"q": query})
        if not isinstance(payload, dict):
            raise TransportFailure("Unexpected search response shape")
        return _parse_places(payload.get("results") or [])

    async def search_nominatim(self, query: str, limit: int = 8) -> List[PlaceResult]:
        payload = await self._request(
            "GET",
            self.settings.nominatim_url,
            params={
                "format": "json",
                "countrycodes": self.settings.nominatim_country,
                "q": query,
                "limit": limit,
                "addressdetails": 1,
            },
            headers={"User-Agent": NOMINATIM_USER_AGENT},
        )
        if not isinstance(payload, list):
            raise TransportFailure("Unexpected Nominatim response shape")
        return _parse_places(payload)
