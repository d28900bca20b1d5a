#!/usr/bin/env python3
"""
Test Data Generation Script for the FanForge review backend.

Seeds a local MongoDB with everything the review workflow reads:
brands and their owners, brand reviewers with role grants, campaigns, brand
assets (most anchored to a Story Protocol IP id), creators, and submissions
spread across pending, approved, rejected and withdrawn.

Prints a local JWT for each brand reviewer and for one creator so the API can
be exercised straight away with auth0 disabled.

Usage:
    python create_test_data.py [options]

Options:
    --brands INT        Number of brands to create (default: 3)
    --creators INT      Number of creators to create (default: 10)
    --submissions INT   Submissions per campaign (default: 8)
    --clean             Delete existing review data before generation
    --seed INT          Random seed for reproducible data generation
    --verbose           Display detailed operation logs

Environment Variables:
    MONGODB_URI         MongoDB connection URI (default: mongodb://localhost:27017)
    MONGODB_DB_NAME     Database name (default: fanforge)
    SECRET_KEY          Secret used to sign the printed local JWTs
"""

import argparse
import os
import random
import sys
import time
import uuid

from datetime import UTC, datetime, timedelta
from typing import Any

from dotenv import load_dotenv
from faker import Faker
from jose import jwt
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError


DEFAULT_MONGODB_URI = "mongodb://localhost:27017"
DEFAULT_DATABASE_NAME = "fanforge"
DEFAULT_SECRET_KEY = "development-secret-key-change-in-production-32chars"
CONNECTION_TIMEOUT_MS = 5000

COLLECTIONS = (
    "users",
    "user_roles",
    "brands",
    "campaigns",
    "assets",
    "submissions",
    "audit_logs",
    "notifications",
)

SUBMISSION_STATUS_WEIGHTS = {
    "pending": 0.5,
    "approved": 0.25,
    "rejected": 0.15,
    "withdrawn": 0.10,
}

# Share of brand assets that carry a registry anchor.
ANCHORED_ASSET_RATIO = 0.75

REJECTION_FEEDBACK = [
    "The logo is stretched, please keep the original proportions.",
    "Colours drift too far from the brand palette.",
    "Please remove the third-party character in the background.",
    "Great idea, but the resolution is too low for the showcase.",
]


def _id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _wallet() -> str:
    return "0x" + "".join(random.choices("0123456789abcdef", k=40))


class TestDataGenerator:
    """
    Generates brands, campaigns, assets, users and submissions for local
    development of the review workflow.
    """

    def __init__(self, seed: int | None = None, verbose: bool = False) -> None:
        self.verbose = verbose
        self.seed = seed
        self.client: MongoClient | None = None
        self.db: Database | None = None

        self.fake = Faker()
        if seed is not None:
            random.seed(seed)
            Faker.seed(seed)

        self._counts: dict[str, int] = dict.fromkeys(COLLECTIONS, 0)
        self._sample_logins: list[tuple[str, str, str]] = []

    def log(self, message: str, level: str = "INFO") -> None:
        if level == "DEBUG" and not self.verbose:
            return
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
        print(f"[{timestamp}] [{level}] {message}")

    # =========================================================================
    # Connection
    # =========================================================================

    def connect(self) -> bool:
        """
        Connect to MongoDB, retrying connection failures with backoff.

        Returns:
            True if connected, False otherwise.
        """
        load_dotenv()
        mongodb_uri = os.getenv("MONGODB_URI", DEFAULT_MONGODB_URI)
        database_name = os.getenv("MONGODB_DB_NAME", DEFAULT_DATABASE_NAME)

        self.log(f"Connecting to MongoDB at {self._mask_uri(mongodb_uri)}...")

        max_retries = 3
        retry_delay = 2
        for attempt in range(max_retries):
            try:
                self.client = MongoClient(
                    mongodb_uri,
                    serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
                    connectTimeoutMS=CONNECTION_TIMEOUT_MS,
                    tz_aware=True,
                )
                self.client.admin.command("ping")
                self.db = self.client[database_name]
                self.log(f"Connected, using database: {database_name}")
                return True

            except ServerSelectionTimeoutError as e:
                self.log(f"Server selection timeout: {e}", "ERROR")
                self.log("Ensure MongoDB is running and reachable at MONGODB_URI.", "ERROR")
                return False

            except ConnectionFailure as e:
                self.log(f"Connection attempt {attempt + 1}/{max_retries} failed: {e}", "WARNING")
                if attempt < max_retries - 1:
                    self.log(f"Retrying in {retry_delay} seconds...")
                    time.sleep(retry_delay)
                    retry_delay *= 2

        self.log("Failed to connect after all retry attempts", "ERROR")
        return False

    @staticmethod
    def _mask_uri(uri: str) -> str:
        if "@" in uri:
            protocol_end = uri.find("://") + 3
            return f"{uri[:protocol_end]}***:***{uri[uri.find('@'):]}"
        return uri

    def clean_test_data(self) -> None:
        self.log("Cleaning existing review data", "WARNING")
        for name in COLLECTIONS:
            result = self.db[name].delete_many({})
            self.log(f"  Deleted {result.deleted_count} documents from {name}")

    # =========================================================================
    # Generators
    # =========================================================================

    def _insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        self.db[collection].insert_one(document)
        self._counts[collection] += 1
        return document

    def _user(self, display_name: str | None = None, with_wallet: bool = True) -> dict[str, Any]:
        created_at = self.fake.date_time_between(start_date="-90d", end_date="-30d", tzinfo=UTC)
        return self._insert(
            "users",
            {
                "_id": _id("user"),
                "email": self.fake.unique.email(),
                "auth0_id": None,
                "display_name": display_name or self.fake.user_name()[:30],
                "avatar_url": f"https://api.dicebear.com/7.x/avatars/svg?seed={uuid.uuid4().hex[:8]}",
                "wallet_address": _wallet() if with_wallet else None,
                "created_at": created_at,
                "updated_at": created_at,
            },
        )

    def _grant(self, user_id: str, role: str, brand_id: str | None = None) -> None:
        self._insert("user_roles", {"user_id": user_id, "role": role, "brand_id": brand_id})

    def generate_brands(self, count: int) -> list[dict[str, Any]]:
        """Brands, each with an owner (granted brand_admin) and a brand reviewer."""
        self.log(f"Generating {count} brands...")
        brands = []
        for _ in range(count):
            owner = self._user()
            brand = self._insert(
                "brands",
                {
                    "_id": _id("brand"),
                    "name": self.fake.unique.company(),
                    "owner_id": owner["_id"],
                    "wallet_address": _wallet(),
                    "created_at": datetime.now(UTC),
                },
            )
            self._grant(owner["_id"], "brand_admin", brand["_id"])

            reviewer = self._user()
            self._grant(reviewer["_id"], "brand_reviewer", brand["_id"])
            self._sample_logins.append((f"reviewer of {brand['name']}", reviewer["_id"], reviewer["email"]))

            brands.append(brand)
            self.log(f"  Created brand: {brand['name']}", "DEBUG")
        return brands

    def generate_campaigns(self, brands: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """One or two campaigns per brand, each with a kit of brand assets."""
        self.log("Generating campaigns and brand assets...")
        campaigns = []
        for brand in brands:
            for _ in range(random.randint(1, 2)):
                kit_id = _id("kit")
                now = datetime.now(UTC)
                campaign = self._insert(
                    "campaigns",
                    {
                        "_id": _id("camp"),
                        "title": f"{self.fake.catch_phrase()}"[:200],
                        "description": self.fake.sentence(),
                        "brand_id": brand["_id"],
                        "ip_kit_id": kit_id,
                        "status": "active",
                        "created_by": brand["owner_id"],
                        "created_at": now,
                        "updated_at": now,
                    },
                )
                campaign["asset_ids"] = [
                    self._insert(
                        "assets",
                        {
                            "_id": _id("asset"),
                            "ip_kit_id": kit_id,
                            "filename": f"{self.fake.word()}.png",
                            "url": f"https://cdn.fanforge.example/kits/{kit_id}/{uuid.uuid4().hex[:8]}.png",
                            "category": random.choice(["characters", "logos", "backgrounds", "props"]),
                            "ip_id": _wallet() if random.random() < ANCHORED_ASSET_RATIO else None,
                            "created_at": now,
                        },
                    )["_id"]
                    for _ in range(random.randint(3, 6))
                ]
                campaigns.append(campaign)
        return campaigns

    def generate_creators(self, count: int) -> list[dict[str, Any]]:
        self.log(f"Generating {count} creators...")
        creators = []
        for _ in range(count):
            creator = self._user(with_wallet=random.random() > 0.2)
            self._grant(creator["_id"], "creator")
            creators.append(creator)
        if creators:
            self._sample_logins.append(("creator", creators[0]["_id"], creators[0]["email"]))
        return creators

    def generate_submissions(
        self,
        campaigns: list[dict[str, Any]],
        creators: list[dict[str, Any]],
        per_campaign: int,
    ) -> None:
        self.log(f"Generating {per_campaign} submissions per campaign...")
        statuses = list(SUBMISSION_STATUS_WEIGHTS)
        weights = list(SUBMISSION_STATUS_WEIGHTS.values())

        for campaign in campaigns:
            brand = self.db["brands"].find_one({"_id": campaign["brand_id"]})
            reviewer = self.db["user_roles"].find_one(
                {"brand_id": brand["_id"], "role": "brand_reviewer"}
            )
            for _ in range(per_campaign):
                status = random.choices(statuses, weights=weights)[0]
                created_at = self.fake.date_time_between(start_date="-20d", end_date="-1d", tzinfo=UTC)
                reviewed = status in ("approved", "rejected")
                submission_id = _id("sub")
                self._insert(
                    "submissions",
                    {
                        "_id": submission_id,
                        "title": self.fake.sentence(nb_words=3).rstrip("."),
                        "description": self.fake.sentence() if random.random() > 0.4 else None,
                        "artwork_url": f"https://cdn.fanforge.example/art/{submission_id}.png",
                        "thumbnail_url": f"https://cdn.fanforge.example/art/{submission_id}_thumb.png",
                        "tags": self.fake.words(nb=random.randint(0, 3)),
                        "canvas_data": None,
                        "used_asset_ids": random.sample(
                            campaign["asset_ids"], k=random.randint(1, len(campaign["asset_ids"]))
                        ),
                        "campaign_id": campaign["_id"],
                        "creator_id": random.choice(creators)["_id"],
                        "ip_kit_id": campaign["ip_kit_id"],
                        "status": status,
                        "is_public": status == "approved",
                        "reviewed_by": reviewer["user_id"] if reviewed else None,
                        "reviewed_at": created_at + timedelta(days=1) if reviewed else None,
                        "feedback": random.choice(REJECTION_FEEDBACK) if status == "rejected" else None,
                        "rating": random.randint(3, 5) if status == "approved" else None,
                        "external_ip_id": None,
                        "created_at": created_at,
                        "updated_at": created_at,
                    },
                )

    # =========================================================================
    # Output
    # =========================================================================

    def display_summary(self) -> None:
        self.log("=" * 60)
        self.log("TEST DATA GENERATION SUMMARY")
        self.log("=" * 60)
        for name, count in self._counts.items():
            if count:
                self.log(f"  {name}: {count}")

        pending = self.db["submissions"].count_documents({"status": "pending"})
        self.log(f"  pending submissions awaiting review: {pending}")

        if self.seed is not None:
            self.log(f"Random seed used: {self.seed} (reuse it to reproduce this data)")

    def display_sample_tokens(self) -> None:
        """Local HS256 tokens, valid for 24 hours, for use while Auth0 is disabled."""
        secret = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)
        now = datetime.now(UTC)
        self.log("Sample local JWTs:")
        for label, user_id, email in self._sample_logins:
            token = jwt.encode(
                {
                    "sub": user_id,
                    "email": email,
                    "exp": now + timedelta(hours=24),
                    "iat": now,
                    "type": "local",
                },
                secret,
                algorithm="HS256",
            )
            print(f"\n  {label} ({user_id}):\n    {token}")

    def close(self) -> None:
        if self.client:
            self.client.close()


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate review workflow test data for FanForge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python create_test_data.py                      # Generate with defaults
    python create_test_data.py --brands 5 --clean   # Clean then generate 5 brands
    python create_test_data.py --seed 42            # Reproducible generation
        """,
    )
    parser.add_argument("--brands", type=int, default=3, help="Number of brands (default: 3)")
    parser.add_argument("--creators", type=int, default=10, help="Number of creators (default: 10)")
    parser.add_argument(
        "--submissions", type=int, default=8, help="Submissions per campaign (default: 8)"
    )
    parser.add_argument("--clean", action="store_true", help="Delete existing data first")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--verbose", action="store_true", help="Display detailed operation logs")
    return parser.parse_args()


def main() -> int:
    args = parse_arguments()
    generator = TestDataGenerator(seed=args.seed, verbose=args.verbose)

    try:
        if not generator.connect():
            return 1
        if args.clean:
            generator.clean_test_data()

        brands = generator.generate_brands(args.brands)
        campaigns = generator.generate_campaigns(brands)
        creators = generator.generate_creators(max(args.creators, 1))
        generator.generate_submissions(campaigns, creators, args.submissions)

        generator.display_summary()
        generator.display_sample_tokens()
        return 0

    except KeyboardInterrupt:
        generator.log("Operation cancelled by user", "WARNING")
        return 130

    finally:
        generator.close()


if __name__ == "__main__":
    sys.exit(main())
