"""Record store backed by the Airtable REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import AirtableConfig
from ..errors import ConfigurationError, TransientError
from .models import CheckinEntry, GuestProfile, MenuItem, RoomAvailability, Treatment

logger = logging.getLogger(__name__)

# Check-in table column names that differ from the model attribute.
CHECKIN_COLUMNS = {"first_name": "First name", "last_name": "Last Name"}


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class AirtableRecordStore:
    """:class:`~lumi.store.base.RecordStore` over three Airtable bases.

    Check-in entries live in the AI knowledge base, guests in the master
    guest base, and rooms, treatments and menu in the current retreat base.
    """

    def __init__(self, config: AirtableConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client

    def _http(self) -> httpx.AsyncClient:
        if not self._config.api_key:
            raise ConfigurationError("AIRTABLE_API_KEY environment variable not set")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _url(self, base_id: Optional[str], table: str, record_id: Optional[str] = None) -> str:
        if not base_id:
            raise ConfigurationError(f"No Airtable base configured for table {table}")
        url = f"{self._config.base_url.rstrip('/')}/{base_id}/{table}"
        return f"{url}/{record_id}" if record_id else url

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        client = self._http()
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        try:
            response = await client.request(method, url, params=params, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransientError(f"Airtable request timed out: {method} {url}") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Airtable request failed: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code == 429 or response.status_code >= 500:
            logger.warning(f"Airtable returned {response.status_code} for {method} {url}")
            raise TransientError(
                f"Airtable error ({response.status_code})", status_code=response.status_code
            )
        if response.status_code in (401, 403):
            raise ConfigurationError(f"Airtable rejected credentials ({response.status_code})")
        response.raise_for_status()
        return response.json()

    async def _select(
        self,
        base_id: Optional[str],
        table: str,
        formula: Optional[str] = None,
        max_records: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if formula:
            params["filterByFormula"] = formula
        if max_records:
            params["maxRecords"] = max_records
        data = await self._request("GET", self._url(base_id, table), params=params)
        return (data or {}).get("records", [])

    # ------------------------------------------------------------------
    # Check-in entries
    @staticmethod
    def _checkin_fields(values: Dict[str, Any]) -> Dict[str, Any]:
        return {
            CHECKIN_COLUMNS.get(key, key): value
            for key, value in values.items()
            if key != "id" and value is not None
        }

    @staticmethod
    def _to_checkin(record: Dict[str, Any]) -> CheckinEntry:
        fields = dict(record.get("fields", {}))
        for attr, column in CHECKIN_COLUMNS.items():
            if column in fields:
                fields[attr] = fields.pop(column)
        known = {k: v for k, v in fields.items() if k in CheckinEntry.model_fields}
        return CheckinEntry(id=record["id"], **known)

    async def create_checkin_entry(self, entry: CheckinEntry) -> CheckinEntry:
        cfg = self._config
        data = await self._request(
            "POST",
            self._url(cfg.ai_knowledge_base_id, cfg.checkin_table),
            json={"fields": self._checkin_fields(entry.model_dump())},
        )
        return self._to_checkin(data or {})

    async def update_checkin_entry(self, record_id: str, **fields: Any) -> CheckinEntry:
        cfg = self._config
        data = await self._request(
            "PATCH",
            self._url(cfg.ai_knowledge_base_id, cfg.checkin_table, record_id),
            json={"fields": self._checkin_fields(fields)},
        )
        if data is None:
            raise KeyError(f"Check-in entry {record_id} not found")
        return self._to_checkin(data)

    async def get_checkin_entry(self, record_id: str) -> CheckinEntry | None:
        cfg = self._config
        data = await self._request(
            "GET", self._url(cfg.ai_knowledge_base_id, cfg.checkin_table, record_id)
        )
        return self._to_checkin(data) if data else None

    async def find_checkin_by_conversation_id(self, conversation_id: str) -> CheckinEntry | None:
        cfg = self._config
        records = await self._select(
            cfg.ai_knowledge_base_id,
            cfg.checkin_table,
            formula=f"{{conversation_id}} = {_quote(conversation_id)}",
            max_records=1,
        )
        return self._to_checkin(records[0]) if records else None

    # ------------------------------------------------------------------
    # Guests
    @staticmethod
    def _to_guest(record: Dict[str, Any]) -> GuestProfile:
        fields = {
            k: v for k, v in record.get("fields", {}).items() if k in GuestProfile.model_fields
        }
        return GuestProfile(id=record["id"], **fields)

    async def get_guest_by_email(self, email: str) -> GuestProfile | None:
        cfg = self._config
        records = await self._select(
            cfg.master_guest_base_id,
            cfg.guests_table,
            formula=f"LOWER({{email}}) = LOWER({_quote(email.strip())})",
            max_records=1,
        )
        return self._to_guest(records[0]) if records else None

    async def create_guest(self, guest: GuestProfile) -> GuestProfile:
        cfg = self._config
        fields = guest.model_dump(exclude={"id"}, exclude_none=True)
        data = await self._request(
            "POST",
            self._url(cfg.master_guest_base_id, cfg.guests_table),
            json={"fields": fields},
        )
        return self._to_guest(data or {})

    async def update_guest(self, record_id: str, **fields: Any) -> GuestProfile:
        cfg = self._config
        data = await self._request(
            "PATCH",
            self._url(cfg.master_guest_base_id, cfg.guests_table, record_id),
            json={"fields": fields},
        )
        if data is None:
            raise KeyError(f"Guest {record_id} not found")
        return self._to_guest(data)

    # ------------------------------------------------------------------
    # Current retreat
    async def check_availability(
        self, arrival: str, departure: str, room_type: Optional[str] = None
    ) -> list[RoomAvailability]:
        cfg = self._config
        clauses = [
            f"{{available_from}} <= {_quote(arrival)}",
            f"{{available_to}} >= {_quote(departure)}",
        ]
        if room_type:
            clauses.append(f"{{room_type}} = {_quote(room_type)}")
        records = await self._select(
            cfg.current_retreat_base_id, cfg.rooms_table, formula=f"AND({', '.join(clauses)})"
        )
        return [RoomAvailability(id=r["id"], **r.get("fields", {})) for r in records]

    async def get_treatments(self, category: Optional[str] = None) -> list[Treatment]:
        cfg = self._config
        formula = f"{{category}} = {_quote(category)}" if category else None
        records = await self._select(cfg.current_retreat_base_id, cfg.treatments_table, formula)
        return [Treatment(id=r["id"], **r.get("fields", {})) for r in records]

    async def get_menu(self, meal_type: Optional[str] = None) -> list[MenuItem]:
        cfg = self._config
        formula = f"{{meal_type}} = {_quote(meal_type)}" if meal_type else None
        records = await self._select(cfg.current_retreat_base_id, cfg.menu_table, formula)
        return [MenuItem(id=r["id"], **r.get("fields", {})) for r in records]
