"""
Synthetic interaction data for local development.

``generate`` produces raw payloads shaped like the data remote's output
(millisecond timestamps included) and ``fake_data_app`` serves them at
``/data``, so the dashboard can run without the real data source:

    kpi-fake-data
"""

from __future__ import annotations

import random
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import uvicorn
from fastapi import FastAPI, Query

OS = ["Windows NT 6.1", "Windows NT 5.1", "Macintosh", "Linux", "Android", "iOS"]
BROWSER = ["Firefox", "Chrome", "MSIE", "Safari", "Opera"]
LOCALE = ["en-us", "en-gb"]
RESOLUTION = [
    {"width": 1024, "height": 768},
    {"width": 1280, "height": 1024},
    {"width": 1680, "height": 1050},
    {"width": 1920, "height": 1200},
]
RANGE_DAYS = 91
TERMINATION_CHANCE = 0.2
MAX_JIGGLE_MILLIS = 3333
MAX_SITES_LOGGED_IN = 13

EVENT_SEQUENCES: Sequence[Sequence[Tuple[str, int]]] = (
    # Returning user, not authenticated, signing in
    (
        ("screen.rp_info", 356),
        ("screen.authenticate", 388),
        ("generate_assertion", 20546),
        ("screen.generate_assertion", 20571),
        ("generate_assertion", 20610),
        ("screen.generate_assertion", 20624),
        ("assertion_generated", 20696),
        ("assertion_generated", 20753),
        ("window.unload", 22467),
    ),
    # Returning user, already authenticated, signing in
    (
        ("screen.rp_info", 342),
        ("user.email_count:1", 359),
        ("screen.pick_email", 379),
        ("generate_assertion", 3683),
        ("screen.generate_assertion", 3689),
        ("assertion_generated", 3756),
        ("window.unload", 5523),
    ),
    # New user signing up and signing in
    (
        ("screen.rp_info", 166),
        ("screen.authenticate", 200),
        ("screen.set_password", 46965),
        ("user.user_staged", 53585),
        ("screen.check_registration", 53599),
        ("user.user_confirmed", 71666),
        ("generate_assertion", 71671),
        ("screen.generate_assertion", 71698),
        ("assertion_generated", 71781),
        ("window.unload", 73545),
    ),
)


def random_timestamp(rng: random.Random, now_millis: int) -> int:
    """
    A millisecond timestamp from the last RANGE_DAYS days, rounded down to
    ten minutes like the real data.
    """

    timestamp = int(now_millis - rng.random() * RANGE_DAYS * 24 * 60 * 60 * 1000)
    return timestamp - timestamp % (10 * 60 * 1000)


def _jiggle(rng: random.Random, offset: int, previous: int) -> int:
    # Offsets must keep increasing along the stream.
    offset += rng.randrange(MAX_JIGGLE_MILLIS)
    while offset <= previous:
        offset += rng.randrange(MAX_JIGGLE_MILLIS)
    return offset


def random_events(rng: random.Random) -> List[List[Any]]:
    """
    A plausible event stream: a known sequence, cut short at a random step,
    with jiggled offsets and always ending in ``window.unload``.
    """

    sequence = rng.choice(EVENT_SEQUENCES)
    first_name, first_offset = sequence[0]
    events: List[List[Any]] = [[first_name, first_offset]]
    for name, offset in sequence[1:-1]:
        if rng.random() < TERMINATION_CHANCE:
            break
        events.append([name, _jiggle(rng, offset, events[-1][1])])

    last_name, last_offset = sequence[-1]
    events.append([last_name, _jiggle(rng, last_offset, events[-1][1])])
    return events


def generate_one(rng: random.Random, now_millis: int) -> Dict[str, Any]:
    return {
        "event_stream": random_events(rng),
        "timestamp": random_timestamp(rng, now_millis),
        "lang": rng.choice(LOCALE),
        "screen_size": dict(rng.choice(RESOLUTION)),
        "user_agent": {
            "os": rng.choice(OS),
            "browser": rng.choice(BROWSER),
            "version": 9001,
        },
        "number_sites_logged_in": rng.randrange(MAX_SITES_LOGGED_IN),
    }


def generate(count: int, seed: Optional[int] = None, now_millis: Optional[int] = None) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    now = now_millis if now_millis is not None else int(time.time() * 1000)
    return [generate_one(rng, now) for _ in range(count)]


FAKE_DATA_PORT = 3435

fake_data_app = FastAPI(title="KPI Fake Data Server", version="0.1.0")


@fake_data_app.get("/data")
async def fake_data(
    count: int = Query(10000, ge=0, le=100000),
    seed: Optional[int] = Query(None),
) -> List[Dict[str, Any]]:
    return generate(count, seed=seed)


def main() -> None:
    uvicorn.run(fake_data_app, host="127.0.0.1", port=FAKE_DATA_PORT)


if __name__ == "__main__":
    main()
