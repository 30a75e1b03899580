"""Create the location store credentials block.

Saves (or overwrites) a LocationStoreCredentials block named
"location-store".  Requires a running Prefect server (PREFECT_API_URL).

Values come from environment variables (a .env file is loaded first):

    LOCATION_STORE_BASE_URL      -- record store API base URL
    LOCATION_STORE_API_TOKEN     -- bearer token (optional)
    LOCATION_STORE_TIMEOUT       -- request timeout in seconds (default 10)
    LOCATION_STORE_CASCADE_MODE  -- client or server (default client)

Usage:
    PREFECT_API_URL=http://localhost:4200/api uv run python scripts/create_blocks.py [block-name]
"""

from __future__ import annotations

import sys

from dotenv import load_dotenv

from location_hierarchy.store import LocationStoreCredentials


def main(name: str = "location-store") -> LocationStoreCredentials:
    block = LocationStoreCredentials()
    block.save(name, overwrite=True)
    token = "set" if block.api_token else "not set"
    print(f"Saved block: {name} -> {block.base_url} (token {token}, cascade {block.cascade_mode})")
    return block


if __name__ == "__main__":
    load_dotenv()
    main(*sys.argv[1:2])
