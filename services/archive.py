from typing import Any, Dict, List, Optional
import httpx
import backoff
import logging
import os
from dotenv import load_dotenv
from config.rate_limits import get_archive_retry_config
from models.archive import ArchiveSearchPage, ArchiveShow, ArchiveTrack

logger = logging.getLogger(__name__)
load_dotenv()

# Audio derivatives in order of preference; the first format with titled files wins
AUDIO_FORMATS = ("VBR MP3", "MP3", "Flac", "24bit Flac", "Ogg Vorbis")

RETRY_CONFIG = get_archive_retry_config()


def _is_permanent_error(e: Exception) -> bool:
    """Client errors other than 429 will not succeed on retry"""
    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        return 400 <= status < 500 and status != 429
    return False


class ArchiveClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = RETRY_CONFIG["timeout_seconds"],
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or os.getenv('ARCHIVE_BASE_URL', 'https://archive.org')).rstrip('/')
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"}
            )
        return self._client

    @backoff.on_exception(
        backoff.expo,
        httpx.HTTPError,
        max_tries=RETRY_CONFIG["max_tries"],
        max_time=RETRY_CONFIG["max_time"],
        giveup=_is_permanent_error
    )
    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client = self._ensure_client()
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Archive.org request {path} failed: {str(e)}")
            raise

    async def search_shows(self, collection: str, rows: int = 100, page: int = 1) -> ArchiveSearchPage:
        """List show identifiers in a collection, oldest first"""
        if rows > 10000:
            raise ValueError("Maximum rows is 10000")

        data = await self._get_json(
            "/advancedsearch.php",
            params={
                "q": f"collection:({collection})",
                "fl[]": "identifier",
                "sort[]": "date asc",
                "rows": rows,
                "page": page,
                "output": "json"
            }
        )
        response = data.get("response", {})
        return ArchiveSearchPage(
            identifiers=[doc["identifier"] for doc in response.get("docs", []) if doc.get("identifier")],
            num_found=int(response.get("numFound", 0))
        )

    async def get_all_show_identifiers(self, collection: str, rows: int = 500) -> List[str]:
        identifiers: List[str] = []
        page = 1
        while True:
            result = await self.search_shows(collection, rows=rows, page=page)
            identifiers.extend(result.identifiers)
            if not result.identifiers or len(identifiers) >= result.num_found:
                break
            page += 1
        return identifiers

    async def get_show(self, identifier: str) -> ArchiveShow:
        data = await self._get_json(f"/metadata/{identifier}")
        metadata = data.get("metadata", {})
        return ArchiveShow(
            identifier=identifier,
            title=self._first(metadata.get("title")) or "",
            date=self._first(metadata.get("date")),
            venue=self._first(metadata.get("venue")),
            tracks=self._extract_tracks(data.get("files", []))
        )

    @staticmethod
    def _first(value: Any) -> Optional[str]:
        # Metadata fields may be a string or a list of strings
        if isinstance(value, list):
            return value[0] if value else None
        return value

    @staticmethod
    def _extract_tracks(files: List[Dict[str, Any]]) -> List[ArchiveTrack]:
        for audio_format in AUDIO_FORMATS:
            selected = [f for f in files if f.get("format") == audio_format]
            if any(f.get("title") for f in selected):
                return [
                    ArchiveTrack(
                        title=f.get("title") or "",
                        file_name=f.get("name", ""),
                        track_number=f.get("track"),
                        length=f.get("length"),
                        format=audio_format
                    )
                    for f in selected
                ]
        return []

    async def close(self):
        """Close the underlying HTTP client"""
        if self._client:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.error(f"Error closing Archive.org client: {str(e)}")
            finally:
                self._client = None
