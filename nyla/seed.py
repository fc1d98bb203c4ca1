"""Generate a large tab-separated dump of synthetic analytics rows."""

from __future__ import annotations

import argparse
import os
import random
import secrets
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Sequence

TOTAL_ROWS = 1_500_000
TOTAL_USERS = 125_321
TOTAL_PAGES = 500

SITE_IDS = ("site1", "site2", "site3")
MONTHS = ("01", "02", "03", "04", "05", "06", "07", "08", "09", "10", "11", "12")
TYPES = ("page", "event")
REFERRERS = ("", "google", "twitter", "reddit", "siteabc.com")
DEVICES = ("desktop", "tablet", "phone")
BROWSERS = ("chrome", "firefox", "edge")
OS_NAMES = ("linux", "windows", "macos")
COUNTRIES = ("c1", "c2", "c3", "c4", "c5", "c6", "c7", "c8")

COLLISION_PROBABILITY = 0.1
NUM_PREGENERATED_HASHES = 100
DEFAULT_WORKERS = 10
DEFAULT_OUTPUT = os.path.join("data", "dump.data")

_RNG = random.Random()


def generate_new_mock_hash() -> str:
    """Return 32 random bytes as hex, shaped like a SHA-256 digest."""
    return secrets.token_hex(32)


def generate_mock_hash(pregenerated: Sequence[str], rng: random.Random | None = None) -> str:
    """Return a fresh hash, or with some probability a reused one."""
    rng = rng or _RNG
    if rng.random() < COLLISION_PROBABILITY:
        return rng.choice(pregenerated)
    return generate_new_mock_hash()


def page_name(rng: random.Random | None = None) -> str:
    """Return five random upper-case letters."""
    rng = rng or _RNG
    return "".join(chr(rng.randrange(26) + 65) for _ in range(5))


def generate_pages(rng: random.Random | None = None) -> list[str]:
    """Return TOTAL_PAGES paths of zero to two segments each."""
    rng = rng or _RNG
    pages = []
    for _ in range(TOTAL_PAGES):
        depth = rng.randrange(3)
        pages.append("/" + "".join(page_name(rng) + "/" for _ in range(depth)))
    return pages


def generate_created_at(rng: random.Random | None = None) -> int:
    """Return a date in the last three years as digits: year, month, unpadded day."""
    rng = rng or _RNG
    year = datetime.now().year - rng.randrange(3)
    month = rng.choice(MONTHS)
    day = rng.randrange(27) + 1
    return int(f"{year}{month}{day}")


def _rfc3339_now() -> str:
    text = datetime.now().astimezone().isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        return text[: -len("+00:00")] + "Z"
    return text


def generate_row(
    pages: Sequence[str], pregenerated: Sequence[str], rng: random.Random | None = None
) -> str:
    """Return one tab-separated, newline-terminated synthetic row."""
    rng = rng or _RNG
    device = rng.choice(DEVICES)
    is_touch = "false" if device == "desktop" else "true"
    anon_id = generate_mock_hash(pregenerated, rng)
    fields = [
        anon_id,
        rng.choice(SITE_IDS),
        str(generate_created_at(rng)),
        rng.choice(TYPES),
        rng.choice(pages),
        rng.choice(REFERRERS),
        is_touch,
        rng.choice(BROWSERS),
        rng.choice(OS_NAMES),
        device,
        rng.choice(COUNTRIES),
        "no need",
        _rfc3339_now(),
    ]
    return "\t".join(fields) + "\n"


def _write_chunk(
    count: int, pages: Sequence[str], pregenerated: Sequence[str]
) -> str:
    rng = random.Random()
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", prefix="data_chunk_", suffix=".tmp", delete=False
    ) as chunk:
        chunk.writelines(generate_row(pages, pregenerated, rng) for _ in range(count))
    return chunk.name


def write_dump(
    path: str | os.PathLike = DEFAULT_OUTPUT,
    rows: int = TOTAL_ROWS,
    workers: int = DEFAULT_WORKERS,
) -> int:
    """Write rows split evenly across workers; return how many were written.

    Rows that do not divide evenly among the workers are dropped.
    """
    if workers < 1:
        raise ValueError("workers must be at least 1")
    chunk_size = rows // workers
    pages = generate_pages()
    pregenerated = [generate_new_mock_hash() for _ in range(NUM_PREGENERATED_HASHES)]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        chunk_files = list(
            pool.map(lambda _: _write_chunk(chunk_size, pages, pregenerated), range(workers))
        )

    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("wb") as out:
            for name in chunk_files:
                with open(name, "rb") as chunk:
                    shutil.copyfileobj(chunk, out)
    finally:
        for name in chunk_files:
            try:
                os.remove(name)
            except OSError:
                pass
    return chunk_size * workers


def main(argv: Sequence[str] | None = None) -> int:
    """Generate the seed dump file."""
    parser = argparse.ArgumentParser(description="Generate synthetic analytics data.")
    parser.add_argument("--output", default=DEFAULT_OUTPUT, help="file to write")
    parser.add_argument("--rows", type=int, default=TOTAL_ROWS, help="rows to generate")
    parser.add_argument(
        "--workers", type=int, default=DEFAULT_WORKERS, help="parallel writers"
    )
    args = parser.parse_args(argv)
    try:
        write_dump(args.output, args.rows, args.workers)
    except (OSError, ValueError) as exc:
        print(exc)
        return 1
    return 0