from __future__ import annotations

import os
from datetime import datetime
from typing import Any

from supabase import Client, create_client


class SupabaseRepo:
    def __init__(
        self,
        url: str | None = None,
        service_role_key: str | None = None,
        client: Client | None = None,
    ) -> None:
        if client is not None:
            self.client = client
            return
        supabase_url = url or os.environ.get("SUPABASE_URL")
        supabase_key = service_role_key or os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required.")
        self.client: Client = create_client(supabase_url, supabase_key)

    def get_agency_for_user(self, user_id: str) -> dict[str, Any] | None:
        rows = (
            self.client.table("agencies")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
            .data
            or []
        )
        return rows[0] if rows else None

    def get_runs(self, agency_id: str) -> list[dict[str, Any]]:
        return (
            self.client.table("agency_runs")
            .select("id, agency_id, created_at, run_completed_at, new_listings_count, total_listings")
            .eq("agency_id", agency_id)
            .order("created_at", desc=True)
            .execute()
            .data
            or []
        )

    def get_runs_since(self, agency_id: str, since: datetime) -> list[dict[str, Any]]:
        return (
            self.client.table("agency_runs")
            .select("id, agency_id, created_at, run_completed_at, new_listings_count")
            .eq("agency_id", agency_id)
            .gte("created_at", since.isoformat())
            .order("created_at")
            .execute()
            .data
            or []
        )

    def get_run_listings(self, run_id: str) -> list[dict[str, Any]]:
        links = (
            self.client.table("agency_run_listings")
            .select("listing_id")
            .eq("run_id", run_id)
            .execute()
            .data
            or []
        )
        ids = [row["listing_id"] for row in links if row.get("listing_id")]
        if not ids:
            return []
        return (
            self.client.table("listings")
            .select("id, title, city, province, price, url, raw, first_seen_at")
            .in_("id", ids)
            .order("price")
            .execute()
            .data
            or []
        )

    def get_agency_listing_ids(self, agency_id: str) -> list[str]:
        rows = (
            self.client.table("agency_listings")
            .select("listing_id")
            .eq("agency_id", agency_id)
            .execute()
            .data
            or []
        )
        return [row["listing_id"] for row in rows if row.get("listing_id")]

    def get_listings_by_ids(self, listing_ids: list[str]) -> list[dict[str, Any]]:
        if not listing_ids:
            return []
        return (
            self.client.table("listings")
            .select("id, title, city, province, price, url, raw, first_seen_at")
            .in_("id", listing_ids)
            .execute()
            .data
            or []
        )

    def get_assignment_map(self, agency_id: str, listing_ids: list[str]) -> dict[str, str]:
        """
        listing_id -> agent_user_id for listings assigned within the agency.
        """
        if not listing_ids:
            return {}
        rows = (
            self.client.table("listing_assignments")
            .select("listing_id, agent_user_id")
            .eq("agency_id", agency_id)
            .in_("listing_id", listing_ids)
            .execute()
            .data
            or []
        )
        return {str(row["listing_id"]): row.get("agent_user_id") for row in rows if row.get("listing_id")}
