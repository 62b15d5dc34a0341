#!/usr/bin/env python3
"""
Command-line client for the presigned storage API.

Usage:
    # Upload a file (parallel multipart above the chunk size)
    presigned-storage upload ./video.mp4 --bucket media

    # Upload under a different key
    presigned-storage upload ./video.mp4 --bucket media --key videos/2024/intro.mp4

    # Download through a presigned GET URL
    presigned-storage download videos/2024/intro.mp4 --bucket media -o intro.mp4

    # List keys
    presigned-storage ls --bucket media

The API location comes from --api-url or the API_URL environment variable.
"""
import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

import httpx

from presigned_storage.client.api import UploadApiClient
from presigned_storage.client.chunking import MAX_CHUNK_SIZE, MIN_CHUNK_SIZE
from presigned_storage.client.coordinator import ParallelUploadCoordinator
from presigned_storage.config import settings
from presigned_storage.storage.errors import StorageError
from presigned_storage.utils.logging import configure_logging

logger = logging.getLogger(__name__)


def chunk_size_arg(value: str) -> int:
    size = int(value)
    if not MIN_CHUNK_SIZE <= size <= MAX_CHUNK_SIZE:
        raise argparse.ArgumentTypeError(f"must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE} bytes")
    return size


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def print_progress(percent: int) -> None:
    sys.stdout.write(f"\r{percent:3d}%")
    sys.stdout.flush()
    if percent >= 100:
        sys.stdout.write("\n")


async def run_upload(args: argparse.Namespace, api: UploadApiClient, storage: httpx.AsyncClient) -> int:
    coordinator = ParallelUploadCoordinator(
        api,
        storage,
        chunk_size=args.chunk_size,
        progress_callback=None if args.quiet else print_progress,
        max_concurrency=args.concurrency,
    )
    result = await coordinator.upload(args.file, args.bucket, args.key)
    mode = f"{result.part_count} parts" if result.multipart else "single part"
    print(f"Uploaded {result.bucket}/{result.key} ({result.size} bytes, {mode})")
    return 0


async def run_download(args: argparse.Namespace, api: UploadApiClient, storage: httpx.AsyncClient) -> int:
    url = await api.get_download_url(args.bucket, args.key)
    output = args.output or os.path.basename(args.key)

    async with storage.stream("GET", url) as response:
        if not response.is_success:
            print(f"ERROR: storage returned HTTP {response.status_code}", file=sys.stderr)
            return 1
        with open(output, "wb") as f:
            async for block in response.aiter_bytes():
                f.write(block)

    print(f"Downloaded {args.bucket}/{args.key} to {output}")
    return 0


async def run_list(args: argparse.Namespace, api: UploadApiClient, storage: httpx.AsyncClient) -> int:
    for key in await api.list_files(args.bucket):
        print(key)
    return 0


COMMANDS = {
    "upload": run_upload,
    "download": run_download,
    "ls": run_list,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="presigned-storage",
        description="Upload, download and list objects through presigned URLs.",
    )
    parser.add_argument("--api-url", default=settings.api_url, help="API base URL, including the /api prefix")
    parser.add_argument("--timeout", type=float, default=settings.client_timeout, help="Per-request timeout in seconds")
    parser.add_argument("--log-level", default=settings.log_level)

    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a file")
    upload.add_argument("file")
    upload.add_argument("--bucket", required=True)
    upload.add_argument("--key", help="Object key (defaults to the file name)")
    upload.add_argument("--chunk-size", type=chunk_size_arg, default=settings.multipart_chunk_size,
                        help="Part size in bytes (files up to this size use a single PUT)")
    upload.add_argument("--concurrency", type=positive_int, default=settings.client_concurrency,
                        help="Parts uploaded at the same time")
    upload.add_argument("-q", "--quiet", action="store_true", help="Do not print progress")

    download = subparsers.add_parser("download", help="Download an object")
    download.add_argument("key")
    download.add_argument("--bucket", required=True)
    download.add_argument("-o", "--output", help="Destination path (defaults to the key's base name)")

    ls = subparsers.add_parser("ls", help="List object keys")
    ls.add_argument("--bucket", required=True)

    return parser


async def run(args: argparse.Namespace) -> int:
    timeout = httpx.Timeout(args.timeout)
    # One connection per concurrent part; parts wait on the coordinator, not on the pool
    connections = getattr(args, "concurrency", settings.client_concurrency)
    storage_limits = httpx.Limits(max_connections=connections, max_keepalive_connections=connections)
    storage_timeout = httpx.Timeout(args.timeout, pool=None)
    async with httpx.AsyncClient(base_url=args.api_url, timeout=timeout) as api_http, \
            httpx.AsyncClient(timeout=storage_timeout, limits=storage_limits) as storage:
        return await COMMANDS[args.command](args, UploadApiClient(api_http), storage)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("presigned-cli", args.log_level)

    if args.command == "upload" and not os.path.isfile(args.file):
        print(f"ERROR: {args.file} is not a file", file=sys.stderr)
        return 2

    try:
        return asyncio.run(run(args))
    except StorageError as e:
        print(f"\nERROR: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
