#!/usr/bin/env python3
"""
Seed a video record and print a matching bearer token.

Video records are created by the account service in production; this script
stands in for it during local development so the upload endpoints can be
exercised with curl.

Usage:
    python scripts/create_test_data.py [--user-id UUID] [--title TEXT] [--ttl-minutes N]

Environment Variables:
    MONGODB_URI, MONGODB_DB_NAME, MONGODB_VIDEOS_COLLECTION, JWT_SECRET, JWT_ISSUER
    (read through app.config.Settings, including the .env file)
"""

import argparse
import sys
import uuid

from datetime import timedelta

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from app.config import get_settings
from app.core.auth import create_access_token
from app.models.video import VideoRecord
from app.services.catalog_service import record_to_document


CONNECTION_TIMEOUT_MS = 5000


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Seed a video record for local upload testing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/create_test_data.py
    python scripts/create_test_data.py --user-id 0b6f3c1e-7d2a-4e8b-9c5d-6a7b8c9d0e1f
    python scripts/create_test_data.py --title "Beach day" --ttl-minutes 120
        """,
    )
    parser.add_argument(
        "--user-id",
        type=uuid.UUID,
        default=None,
        help="Owner of the new video (default: a fresh random user)",
    )
    parser.add_argument("--title", default="Test video", help="Title of the new video")
    parser.add_argument(
        "--ttl-minutes",
        type=int,
        default=60,
        help="Lifetime of the printed bearer token in minutes (default: 60)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_arguments()
    settings = get_settings()

    owner_id = args.user_id or uuid.uuid4()
    record = VideoRecord(id=uuid.uuid4(), owner_id=owner_id, title=args.title)

    client: MongoClient = MongoClient(
        settings.mongodb_uri, serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS, tz_aware=True
    )
    try:
        collection = client[settings.mongodb_db_name][settings.mongodb_videos_collection]
        collection.insert_one(record_to_document(record))
    except PyMongoError as e:
        print(f"Failed to insert video record: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()

    token = create_access_token(
        owner_id, settings, expires_in=timedelta(minutes=args.ttl_minutes)
    )
    base_url = f"http://{settings.public_host}:{settings.port}/api"

    print(f"video_id: {record.id}")
    print(f"user_id:  {owner_id}")
    print(f"token:    {token}")
    print()
    print("Try:")
    print(
        f'  curl -H "Authorization: Bearer {token}" '
        f'-F "thumbnail=@thumb.png;type=image/png" {base_url}/thumbnail_upload/{record.id}'
    )
    print(
        f'  curl -H "Authorization: Bearer {token}" '
        f'-F "video=@clip.mp4;type=video/mp4" {base_url}/video_upload/{record.id}'
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
