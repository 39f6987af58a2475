#!/usr/bin/env python3
"""Simulate the mobile app pairing against a running server.

Usage:
    python scripts/mobile_client.py "<connection url from the QR code>" --external-id DRV-1001
    python scripts/mobile_client.py --token <token> --url http://localhost:8000
"""

import argparse
import asyncio
import platform
import uuid
from urllib.parse import parse_qs, urlparse

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()


def parse_connection_url(connection_url: str) -> tuple[str, str]:
    """Split a scanned connection URL into (api base url, token)."""
    query = parse_qs(urlparse(connection_url).query)
    token = query.get("token", [""])[0]
    base = query.get("baseUrl", [""])[0]
    if not token or not base:
        raise ValueError("Connection URL must carry token and baseUrl")
    return base.rstrip("/"), token


class MobileClient:
    """Plays the app's side of pairing and ride fetching."""

    def __init__(self, api_base: str):
        self.api_base = api_base.rstrip("/")
        self.client = httpx.AsyncClient(timeout=30.0)
        self.identity: dict | None = None
        self.credential: str | None = None

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def _auth(self) -> tuple[dict[str, str], dict[str, str]]:
        assert self.identity and self.credential
        params = {"identity_kind": self.identity["kind"], "identity_id": self.identity["id"]}
        return {"Authorization": f"Bearer {self.credential}"}, params

    def _fail(self, response: httpx.Response) -> None:
        detail = response.json().get("detail")
        if isinstance(detail, dict):
            console.print(f"[red]{response.status_code} {detail['code']}:[/red] {detail['message']}")
        else:
            console.print(f"[red]{response.status_code}:[/red] {detail}")

    async def connect(self, token: str, driver_info: dict | None) -> bool:
        status = await self.client.get(f"{self.api_base}/mobile/connect", params={"token": token})
        if status.status_code != 200:
            self._fail(status)
            return False

        bound = status.json()["bound"]
        console.print(f"[dim]Token valid until {status.json()['expires_at']} (bound={bound})[/dim]")

        payload: dict = {
            "token": token,
            "device_info": {
                "device_id": f"sim-{uuid.uuid4().hex[:12]}",
                "device_name": "Simulator",
                "device_model": platform.machine(),
                "platform": platform.system().lower(),
            },
        }
        if not bound:
            payload["driver_info"] = driver_info

        response = await self.client.post(f"{self.api_base}/mobile/connect", json=payload)
        if response.status_code != 200:
            self._fail(response)
            return False

        data = response.json()
        self.identity = data["identity"]
        self.credential = data["connection_info"]["credential"]
        console.print(Panel.fit(
            f"Paired as [cyan]{self.identity['first_name']} {self.identity['last_name']}[/cyan]\n"
            f"Identity: [dim]{self.identity['kind']}:{self.identity['id']}[/dim]\n"
            f"Connected at: [dim]{data['connection_info']['connected_at']}[/dim]",
            title="Connected",
        ))
        self.print_rides(data["rides"])
        return True

    async def refresh_rides(self) -> None:
        headers, params = self._auth()
        response = await self.client.get(f"{self.api_base}/mobile/rides", headers=headers, params=params)
        if response.status_code != 200:
            self._fail(response)
            return
        self.print_rides(response.json()["rides"])

    async def disconnect(self) -> None:
        headers, params = self._auth()
        response = await self.client.post(
            f"{self.api_base}/mobile/disconnect", headers=headers, params=params
        )
        if response.status_code != 200:
            self._fail(response)
            return
        console.print("[dim]Disconnected, credential revoked.[/dim]")

    def print_rides(self, rides: list[dict]) -> None:
        if not rides:
            console.print("[dim]No open rides.[/dim]")
            return

        table = Table(title="Assigned rides")
        table.add_column("Ride", style="cyan")
        table.add_column("Status")
        table.add_column("Pickup time", style="yellow")
        table.add_column("From")
        table.add_column("To")
        for ride in rides:
            table.add_row(
                ride["ride_number"],
                ride["status"],
                ride["pickup_time"],
                ride["pickup_address"],
                ride["dropoff_address"],
            )
        console.print(table)


async def main():
    parser = argparse.ArgumentParser(description="Pair a simulated device and list its rides")
    parser.add_argument("connection_url", nargs="?", help="URL encoded in the pairing QR code")
    parser.add_argument("--token", help="Token to redeem instead of a connection URL")
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Server URL when using --token (default: http://localhost:8000)",
    )
    parser.add_argument("--external-id", help="Driver external id for unbound tokens")
    parser.add_argument("--first-name", default="Sim")
    parser.add_argument("--last-name", default="Driver")
    parser.add_argument("--keep", action="store_true", help="Don't revoke the credential at exit")

    args = parser.parse_args()

    if args.connection_url:
        api_base, token = parse_connection_url(args.connection_url)
    elif args.token:
        api_base, token = f"{args.url.rstrip('/')}/api", args.token
    else:
        parser.error("Pass a connection URL or --token")

    driver_info = None
    if args.external_id:
        driver_info = {
            "external_id": args.external_id,
            "first_name": args.first_name,
            "last_name": args.last_name,
        }

    client = MobileClient(api_base)
    try:
        if not await client.connect(token, driver_info):
            return
        await client.refresh_rides()
        if not args.keep:
            await client.disconnect()
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
