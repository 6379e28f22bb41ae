#!/usr/bin/env python3
"""
Publish Order Script

Reads a JSON file and appends it to the orders stream, the same way an
upstream producer would. Handy for local testing of the listener.

Usage:
    python scripts/publish_order.py
    python scripts/publish_order.py -f tests/testdata/model.json --stream orders
"""
import argparse
import json
import secrets
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import redis

from orderhub.config import get_settings
from orderhub.utils.logger import log


def load_payload(path: str) -> bytes:
    """Read a file and make sure it holds valid JSON. Raises ValueError otherwise."""
    payload = Path(path).read_bytes()
    try:
        json.loads(payload)
    except ValueError as e:
        raise ValueError(f"{path} does not contain valid JSON: {e}") from e
    return payload


def client_name(base: str) -> str:
    """Client name with a random instance suffix so parallel runs don't collide."""
    return f"{base}-{secrets.randbelow(1 << 31)}"


def publish(client: redis.Redis, stream: str, payload: bytes) -> bytes:
    """Append the payload to the stream. Returns the entry id."""
    return client.xadd(stream, {"data": payload})


def main(argv=None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Publish an order JSON file to the orders stream")
    parser.add_argument("-f", "--file", default="model.json", help="path to JSON payload")
    parser.add_argument("--stream", default=settings.stream_name, help="stream to publish to")
    parser.add_argument("--url", default=settings.redis_url, help="Redis server URL")
    parser.add_argument("--client", default="publisher", help="client name prefix")
    args = parser.parse_args(argv)

    try:
        payload = load_payload(args.file)
    except OSError as e:
        log.error(f"read payload: {e}")
        return 1
    except ValueError as e:
        log.error(str(e))
        return 1

    client = redis.Redis.from_url(args.url, client_name=client_name(args.client))
    try:
        entry_id = publish(client, args.stream, payload)
    except redis.RedisError as e:
        log.error(f"publish: {e}")
        return 1
    finally:
        client.close()

    log.info(f"Published {len(payload)} bytes to {args.stream} ({entry_id.decode() if isinstance(entry_id, bytes) else entry_id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
