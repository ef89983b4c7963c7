#!/usr/bin/env python3
"""
Print a bucket as an indented folder tree.

Lists every object in the bucket (following continuation tokens) and
prints the resulting tree with file sizes.

Usage:
    python scripts/print_tree.py                         # bucket from .env (S3_* vars)
    python scripts/print_tree.py --config bucket.json    # bucket from a config file
    python scripts/print_tree.py --mock                  # in-memory demo bucket

Config file format:
    {
      "bucketName": "your-s3-bucket-name",
      "region": "your-bucket-region",
      "accessKeyId": "your-aws-access-key-id",
      "secretAccessKey": "your-aws-secret-access-key"
    }
"""

import asyncio
import os
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.config.settings import MOCK_BUCKET_NAME, ConfigurationError, get_settings, parse_bucket_config
from src.core.explorer import BucketExplorer, FolderNode, ListingError
from src.core.explorer.navigation import format_bytes
from src.infrastructure.storage import create_storage_client


def render_tree(forest) -> list[str]:
    """Render a forest as indented lines, children in encounter order."""
    lines = []
    for depth, node in forest.walk():
        indent = "  " * depth
        if isinstance(node, FolderNode):
            lines.append(f"{indent}{node.name}/")
        else:
            lines.append(f"{indent}{node.name}  ({format_bytes(node.size)})")
    return lines


async def print_bucket_tree(storage, bucket: str, page_size: int) -> bool:
    explorer = BucketExplorer(storage=storage, bucket=bucket, page_size=page_size)

    print(f"Listing bucket: {bucket}")
    try:
        forest = await explorer.refresh()
    except ListingError as e:
        print(f"ERROR: {e}")
        return False

    if not forest.roots:
        print("(empty bucket)")
        return True

    for line in render_tree(forest):
        print(line)

    print(f"\nTotal: {len(forest)} files and folders")
    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Print a bucket as a folder tree')
    parser.add_argument('--config', help='Bucket configuration JSON file')
    parser.add_argument('--mock', action='store_true', help='Use the in-memory demo bucket')
    parser.add_argument('--page-size', type=int, default=None, help='Keys per listing page')
    args = parser.parse_args()

    settings = get_settings()
    page_size = args.page_size or settings.listing_page_size

    if args.mock:
        storage = create_storage_client(mock_mode=True, seed_demo=True)
        bucket = MOCK_BUCKET_NAME
    else:
        if args.config:
            if not os.path.exists(args.config):
                print(f"ERROR: Cannot find {args.config}")
                sys.exit(1)
            try:
                config = parse_bucket_config(Path(args.config).read_text(encoding='utf-8'))
            except ConfigurationError as e:
                print(f"ERROR: {e}")
                sys.exit(1)
        else:
            missing = settings.validate_required_fields()
            if missing:
                print(f"ERROR: Missing {', '.join(missing)}")
                sys.exit(1)
            config = settings.storage_config()

        storage = create_storage_client(config=config)
        bucket = config.bucket_name

    success = asyncio.run(print_bucket_tree(storage, bucket, page_size))

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
