"""
Tests for project and section catalogue
"""

import pytest
from unittest.mock import AsyncMock
from tdsync.utils.error_handler import APIError


@pytest.mark.asyncio
async def test_refresh_replaces_catalogue(project_cache, mock_todoist_client, task_cache_service):
    mock_todoist_client.get_projects = AsyncMock(return_value=[
        {"id": "p1", "name": "Inbox", "color": "grey"},
        {"id": "p2", "name": "Garden"},
    ])
    mock_todoist_client.get_sections = AsyncMock(return_value=[
        {"id": "s1", "name": "Spring", "project_id": "p2"},
    ])

    await project_cache.refresh()

    assert task_cache_service.get_project_id_by_name("Garden") == "p2"
    assert task_cache_service.get_project_id_by_name("Work") is None
    assert task_cache_service.get_section_id("Spring", "p2") == "s1"


@pytest.mark.asyncio
async def test_refresh_respects_ttl(project_cache, mock_todoist_client):
    await project_cache.refresh()
    await project_cache.refresh()
    assert mock_todoist_client.get_projects.await_count == 1

    await project_cache.refresh(force_refresh=True)
    assert mock_todoist_client.get_projects.await_count == 2

    project_cache.clear_cache()
    await project_cache.refresh()
    assert mock_todoist_client.get_projects.await_count == 3


@pytest.mark.asyncio
async def test_refresh_failure_keeps_catalogue(project_cache, mock_todoist_client, task_cache_service):
    mock_todoist_client.get_projects = AsyncMock(side_effect=APIError("down", 503))

    await project_cache.refresh(force_refresh=True)

    assert task_cache_service.get_project_id_by_name("Work") == "work1"


@pytest.mark.asyncio
async def test_failed_project_creation_returns_none(project_cache, mock_todoist_client):
    mock_todoist_client.create_project = AsyncMock(side_effect=APIError("forbidden", 403))

    assert await project_cache.get_or_create_project_id("Side") is None
    assert await project_cache.get_or_create_project_id("Work") == "work1"


@pytest.mark.asyncio
async def test_section_is_created_per_project(project_cache, mock_todoist_client):
    first = await project_cache.get_or_create_section_id("errands", "work1")
    again = await project_cache.get_or_create_section_id("errands", "work1")
    other = await project_cache.get_or_create_section_id("errands", "inbox_project")

    assert first == again == "sec_errands"
    assert other == "sec_errands"
    assert mock_todoist_client.create_section.await_count == 2
