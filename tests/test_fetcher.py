from typing import Any

import pytest
from inline_snapshot import snapshot

from github_metadata_sync.clients.errors.github import RequestError
from github_metadata_sync.clients.models.github import DirectoryEntry
from github_metadata_sync.config import PlanPattern, SyncSettings
from github_metadata_sync.errors import DescriptionParseError
from github_metadata_sync.fetcher import DescriptionFetcher, match_description_directories
from tests.conftest import FakeDescriptionsClient, dump_list_for_snapshot


def directory_entries(*names: str) -> list[DirectoryEntry]:
    return [DirectoryEntry(name=name, path=f"descriptions/{name}", type="dir") for name in names]


class TestMatchDescriptionDirectories:
    def test_order_and_filtering(self, settings: SyncSettings):
        entries = directory_entries("ghes-3.9", "ghes-2.22", "README.md", "ghec", "ghes-3.10", "api.github.com", "ghes-3.11")

        description_files = match_description_directories(entries=entries, settings=settings)

        assert dump_list_for_snapshot(description_files) == snapshot(
            [
                {
                    "filename": "descriptions/api.github.com/api.github.com.json",
                    "directory": "api.github.com",
                    "plan": "public",
                    "plan_index": 0,
                    "release_major": 0,
                    "release_minor": 0,
                },
                {
                    "filename": "descriptions/ghec/ghec.json",
                    "directory": "ghec",
                    "plan": "ghec",
                    "plan_index": 1,
                    "release_major": 0,
                    "release_minor": 0,
                },
                {
                    "filename": "descriptions/ghes-3.11/ghes-3.11.json",
                    "directory": "ghes-3.11",
                    "plan": "ghes",
                    "plan_index": 2,
                    "release_major": 3,
                    "release_minor": 11,
                },
                {
                    "filename": "descriptions/ghes-3.10/ghes-3.10.json",
                    "directory": "ghes-3.10",
                    "plan": "ghes",
                    "plan_index": 2,
                    "release_major": 3,
                    "release_minor": 10,
                },
                {
                    "filename": "descriptions/ghes-3.9/ghes-3.9.json",
                    "directory": "ghes-3.9",
                    "plan": "ghes",
                    "plan_index": 2,
                    "release_major": 3,
                    "release_minor": 9,
                },
            ]
        )

    def test_minimum_major_is_configurable(self, settings: SyncSettings):
        entries = directory_entries("ghes-3.9", "ghes-3.10", "ghes-4.0")

        description_files = match_description_directories(entries=entries, settings=settings.with_minimum_major("ghes", 4))

        assert [description_file.directory for description_file in description_files] == ["ghes-4.0"]

    def test_versions_below_minimum_fall_through_to_later_plans(self):
        settings = SyncSettings(
            plans=[
                PlanPattern(name="ghes", pattern=r"(?P<plan>ghes)-(?P<major>\d+)\.(?P<minor>\d+)", minimum_major=3),
                PlanPattern(name="legacy", pattern=r"(?P<plan>ghes)-(?P<major>\d+)\.(?P<minor>\d+)"),
            ]
        )

        description_files = match_description_directories(entries=directory_entries("ghes-2.22", "ghes-3.0"), settings=settings)

        assert [(description_file.directory, description_file.plan) for description_file in description_files] == [
            ("ghes-3.0", "ghes"),
            ("ghes-2.22", "legacy"),
        ]

    def test_no_matches(self, settings: SyncSettings):
        assert match_description_directories(entries=directory_entries("README.md"), settings=settings) == []


class TestDescriptionFetcher:
    async def test_fetch(self, descriptions_client: FakeDescriptionsClient, settings: SyncSettings):
        fetcher = DescriptionFetcher(client=descriptions_client, settings=settings)

        description_files = await fetcher.fetch(ref="s3cr3t")

        assert [description_file.directory for description_file in description_files] == snapshot(
            ["api.github.com", "ghec", "ghes-3.10", "ghes-3.9"]
        )
        assert all(description_file.description is not None for description_file in description_files)
        assert sorted(descriptions_client.downloaded) == snapshot(
            [
                ("descriptions/api.github.com/api.github.com.json", "s3cr3t"),
                ("descriptions/ghec/ghec.json", "s3cr3t"),
                ("descriptions/ghes-3.10/ghes-3.10.json", "s3cr3t"),
                ("descriptions/ghes-3.9/ghes-3.9.json", "s3cr3t"),
            ]
        )

        api_description = description_files[0].description
        assert api_description is not None
        assert [tuple(described) for described in api_description.described_operations()] == snapshot(
            [
                ("GET", "/a/{a_id}", "https://docs.github.com/rest/a/a#get-a", "Get an a"),
                ("GET", "/undocumented/{undocumented_id}", None, None),
            ]
        )

    async def test_fetch_nothing_matched(self, settings: SyncSettings):
        client = FakeDescriptionsClient(descriptions={}, extra_entries=["README.md"])
        fetcher = DescriptionFetcher(client=client, settings=settings)

        assert await fetcher.fetch(ref="main") == []
        assert client.downloaded == []

    async def test_fetch_fails_fast(self, descriptions: dict[str, dict[str, Any]], settings: SyncSettings):
        client = FakeDescriptionsClient(descriptions=descriptions, failing=["ghec"], slow=["ghes-3.9", "ghes-3.10"])
        fetcher = DescriptionFetcher(client=client, settings=settings)

        with pytest.raises(RequestError, match="Server Error"):
            _ = await fetcher.fetch(ref="main")

        assert sorted(client.cancelled) == ["ghes-3.10", "ghes-3.9"]

    async def test_fetch_malformed_description(self, settings: SyncSettings):
        client = FakeDescriptionsClient(descriptions={"ghec": {"paths": "not a mapping"}})
        fetcher = DescriptionFetcher(client=client, settings=settings)

        with pytest.raises(DescriptionParseError, match="descriptions/ghec/ghec.json"):
            _ = await fetcher.fetch(ref="main")
