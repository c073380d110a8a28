"""
Fires scans and downloads at a running server to check tracking end to end.

    python scripts/simulate_traffic.py demo-doc --scans 3 --downloads 2
    python scripts/simulate_traffic.py demo-doc --email owner@example.com
"""

import argparse
import asyncio
import httpx

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15",
]


async def simulate(base_url: str, resource_id: str, scans: int, downloads: int, email: str):
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        for i in range(scans):
            response = await client.get(
                f"/r/{resource_id}",
                headers={
                    "User-Agent": USER_AGENTS[i % len(USER_AGENTS)],
                    "X-Forwarded-For": f"192.168.1.{100 + i}",
                },
                follow_redirects=False,
            )
            if response.status_code == 307:
                print(f"✅ Scan {i + 1}: redirected to {response.headers.get('location')}")
            else:
                print(f"❌ Scan {i + 1}: {response.status_code} {response.text[:200]}")

        for i in range(downloads):
            response = await client.post(
                f"/api/v1/resources/{resource_id}/download",
                headers={"User-Agent": USER_AGENTS[i % len(USER_AGENTS)]},
            )
            if response.status_code == 200:
                print(f"✅ Download {i + 1}: count={response.json().get('new_count')}")
            else:
                print(f"❌ Download {i + 1}: {response.status_code} {response.text[:200]}")

        if email:
            response = await client.get(
                f"/api/v1/resources/{resource_id}/stats", params={"email": email}
            )
            if response.status_code == 200:
                stats = response.json()
                print(f"📊 Scans: {stats['scan_count']}  Downloads: {stats['download_count']}")
                print(f"📊 Recent scans in log: {len(stats['recent_scans'])}")
            else:
                print(f"❌ Stats: {response.status_code} {response.text[:200]}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate QR scans and downloads")
    parser.add_argument("resource_id")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--scans", type=int, default=3)
    parser.add_argument("--downloads", type=int, default=1)
    parser.add_argument("--email", default=None, help="Owner email, to print stats afterwards")
    args = parser.parse_args()

    try:
        asyncio.run(simulate(args.base_url, args.resource_id, args.scans, args.downloads, args.email))
    except httpx.HTTPError as e:
        print(f"❌ Error: {e}")
