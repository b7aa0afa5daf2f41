import asyncio
from datetime import date

import pytest

from conftest import FakeDirectory, make_channel
from slack_cheers.dashboard import DashboardService, merge_people_with_members
from slack_cheers.db import Database
from slack_cheers.errors import ConfigurationError, NotFoundError
from slack_cheers.models import Person, SlackUserProfile

TODAY = date(2025, 6, 10)


def _seed(database: Database) -> str:
    workspace, _ = make_channel(database)
    database.upsert_person(Person(workspace.id, "U1", "ann", "Ann", birthday_day=12, birthday_month=6))
    database.upsert_person(Person(workspace.id, "U2", "bob", "Bob", hire_date=date(2021, 6, 12)))
    database.upsert_person(Person(workspace.id, "U3", "cy", "Cy", birthday_day=9, birthday_month=6))
    database.upsert_person(Person(workspace.id, "U4", "di", "Di", birthday_day=1, birthday_month=9))
    return workspace.id


def test_overview_sorted_by_date_then_name(database: Database) -> None:
    workspace_id = _seed(database)
    items = DashboardService(database).overview(workspace_id, days=30, today=TODAY)

    assert [(item.date, item.type, item.name) for item in items] == [
        (date(2025, 6, 12), "birthday", "Ann"),
        (date(2025, 6, 12), "anniversary", "Bob"),
    ]
    assert items[0].years is None
    assert items[1].years == 4


def test_overview_filters_by_type_and_window(database: Database) -> None:
    workspace_id = _seed(database)
    service = DashboardService(database)

    birthdays = service.overview(workspace_id, days=90, celebration_type="birthdays", today=TODAY)
    assert [item.user_id for item in birthdays] == ["U1", "U4"]
    anniversaries = service.overview(workspace_id, days=0, celebration_type="anniversaries", today=TODAY)
    assert [item.user_id for item in anniversaries] == ["U2"]
    with pytest.raises(ValueError):
        service.overview(workspace_id, celebration_type="holidays", today=TODAY)


def test_merge_people_with_members() -> None:
    existing = [
        Person("W1", "U1", slack_handle="", display_name="Zed", avatar_url=""),
        Person("W1", "UGONE", slack_handle="gone", display_name="Ghost"),
    ]
    members = [
        SlackUserProfile("U1", "zed", "Zed From Slack", "https://img/zed.png"),
        SlackUserProfile("U2", "amy", "amy", ""),
    ]
    merged = merge_people_with_members(existing, members, "W1")

    assert [person.slack_user_id for person in merged] == ["U2", "UGONE", "U1"]
    zed = merged[2]
    assert (zed.slack_handle, zed.display_name, zed.avatar_url) == ("zed", "Zed", "https://img/zed.png")
    assert merged[0].public_celebration_opt_in is True
    assert merged[0].reminders_mode == "same_day"


def test_list_people_uses_directory(database: Database) -> None:
    workspace, _ = make_channel(database)
    database.upsert_person(Person(workspace.id, "U1", "ann", "Ann"))
    directory = FakeDirectory(members=[SlackUserProfile("U2", "bob", "Bob", "")])

    people = asyncio.run(DashboardService(database, directory).list_people(workspace.id))

    assert [person.slack_user_id for person in people] == ["U1", "U2"]
    assert directory.tokens == ["xoxb-test"]


def test_list_people_without_token_returns_stored(database: Database) -> None:
    workspace, _ = make_channel(database, bot_token=None)
    database.upsert_person(Person(workspace.id, "U1", "ann", "Ann"))
    directory = FakeDirectory(members=[SlackUserProfile("U2", "bob", "Bob", "")])

    people = asyncio.run(DashboardService(database, directory).list_people(workspace.id))

    assert [person.slack_user_id for person in people] == ["U1"]
    with pytest.raises(NotFoundError):
        asyncio.run(DashboardService(database, directory).list_people("missing"))


def test_upsert_person_validation(database: Database) -> None:
    workspace, _ = make_channel(database)
    service = DashboardService(database)

    person = service.upsert_person(workspace.id, "U1", slack_handle="ann", display_name="Ann", birthday_day=29, birthday_month=2)
    assert person.reminders_mode == "same_day"
    assert (person.birthday_day, person.birthday_month) == (29, 2)

    bad_inputs = [
        {"birthday_day": 5},
        {"birthday_day": 32, "birthday_month": 1},
        {"birthday_day": 31, "birthday_month": 4},
        {"birthday_day": 1, "birthday_month": 13},
        {"birthday_day": 1, "birthday_month": 1, "birthday_year": 1800},
        {"reminders_mode": "weekly"},
    ]
    for fields in bad_inputs:
        with pytest.raises(ValueError):
            service.upsert_person(workspace.id, "U1", slack_handle="ann", display_name="Ann", **fields)


def test_channel_updates_validate_input(database: Database) -> None:
    workspace, channel = make_channel(database)
    service = DashboardService(database)

    with pytest.raises(ConfigurationError):
        service.update_channel_settings(workspace.id, channel.id, "9am", "UTC", True, True)
    with pytest.raises(ConfigurationError):
        service.update_channel_settings(workspace.id, channel.id, "09:00", "Not/AZone", True, True)
    with pytest.raises(ConfigurationError):
        service.update_channel_templates(workspace.id, channel.id, " ", "{users}")
    with pytest.raises(NotFoundError):
        service.update_channel_settings(workspace.id, "CMISSING", "09:00", "UTC", True, True)

    updated = service.update_channel_settings(workspace.id, "C1", "08:45", "Asia/Tokyo", True, False)
    assert (updated.posting_time, updated.timezone, updated.anniversaries_enabled) == ("08:45", "Asia/Tokyo", False)


def test_bootstrap_workspace(database: Database) -> None:
    service = DashboardService(database)
    workspace, channel = service.bootstrap_workspace("TNEW", "New Co", "Europe/Paris", "CGEN", "general", "10:00")

    assert workspace.timezone == "Europe/Paris"
    assert (channel.slack_channel_id, channel.posting_time, channel.timezone) == ("CGEN", "10:00", "Europe/Paris")
    assert [item.id for item in service.list_channels(workspace.id)] == [channel.id]
    with pytest.raises(ConfigurationError):
        service.bootstrap_workspace("TNEW", "New Co", "Europe/Paris", "CGEN", "general", "25:00")
