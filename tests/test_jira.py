"""Tests for the Jira provider."""

import re
from datetime import UTC, datetime

import pytest
from pytest_httpx import HTTPXMock

from tickethub.config import JiraConfig
from tickethub.exceptions import NotFoundError, ValidationError
from tickethub.providers.jira import JiraProvider, escape_jql, extract_text_from_adf


@pytest.fixture
def jira_config() -> JiraConfig:
    """Create a test Jira configuration."""
    return JiraConfig(
        base_url="https://test.atlassian.net/",
        email="test@example.com",
        token="test-token-123",
        enabled=True,
    )


@pytest.fixture
def jira_provider(jira_config: JiraConfig) -> JiraProvider:
    """Create a test Jira provider."""
    return JiraProvider(jira_config)


# Sample Jira API responses
SAMPLE_ISSUE = {
    "id": "10042",
    "key": "TEST-123",
    "fields": {
        "summary": "Test ticket summary",
        "description": {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": "Test description"}],
                },
                {
                    "type": "bulletList",
                    "content": [
                        {
                            "type": "listItem",
                            "content": [{"type": "text", "text": "first point"}],
                        }
                    ],
                },
            ],
        },
        "status": {"name": "In Progress"},
        "priority": {"name": "Highest"},
        "assignee": {"displayName": "Test User", "emailAddress": "test@example.com"},
        "labels": ["backend", "auth"],
        "created": "2024-01-15T10:00:00.000+0000",
        "updated": "2024-01-16T10:00:00.000Z",
    },
}

MINIMAL_ISSUE = {"id": "10043", "key": "TEST-124", "fields": {}}

SAMPLE_SEARCH_RESPONSE = {"issues": [SAMPLE_ISSUE, MINIMAL_ISSUE], "total": 2}

ISSUE_URL = re.compile(r"https://test\.atlassian\.net/rest/api/3/issue/TEST-123\?fields=.*")
SEARCH_URL = re.compile(r"https://test\.atlassian\.net/rest/api/3/search\?.*")


class TestJiraMapping:
    """Tests for map_to_recent_ticket."""

    def test_maps_all_fields(self, jira_provider: JiraProvider) -> None:
        ticket = jira_provider.map_to_recent_ticket(SAMPLE_ISSUE)

        assert ticket.id == "10042"
        assert ticket.key == "TEST-123"
        assert ticket.summary == "Test ticket summary"
        assert ticket.description == "Test description\nfirst point"
        assert ticket.assignee == "Test User"
        assert ticket.labels == ["backend", "auth"]
        assert ticket.url == "https://test.atlassian.net/browse/TEST-123"
        assert ticket.provider == "jira"
        assert ticket.created == datetime(2024, 1, 15, 10, 0, tzinfo=UTC)
        assert ticket.updated == datetime(2024, 1, 16, 10, 0, tzinfo=UTC)

    def test_highest_in_progress(self, jira_provider: JiraProvider) -> None:
        ticket = jira_provider.map_to_recent_ticket(SAMPLE_ISSUE)

        assert ticket.priority == "urgent"
        assert ticket.status == "In Progress"
        assert ticket.is_in_progress
        assert not ticket.is_ready_to_start
        assert not ticket.is_blocked

    def test_missing_fields_get_defaults(self, jira_provider: JiraProvider) -> None:
        ticket = jira_provider.map_to_recent_ticket(MINIMAL_ISSUE)

        assert ticket.summary == ""
        assert ticket.description == ""
        assert ticket.priority == "medium"
        assert ticket.status == "Unknown"
        assert ticket.assignee is None
        assert ticket.labels == []

    def test_plain_string_description(self, jira_provider: JiraProvider) -> None:
        issue = {"key": "TEST-1", "fields": {"description": "plain text"}}
        assert jira_provider.map_to_recent_ticket(issue).description == "plain text"

    def test_status_predicates(self, jira_provider: JiraProvider) -> None:
        assert jira_provider.is_in_progress("In Development")
        assert jira_provider.is_ready_to_start("To Do")
        assert jira_provider.is_blocked("Waiting for customer")
        assert not jira_provider.is_blocked("Done")


class TestJiraGetTicket:
    """Tests for get_ticket."""

    @pytest.mark.parametrize("ticket_id", ["invalid-format", "test-123", "PROJ", "PROJ-", "#12"])
    async def test_invalid_id_rejected_before_network(
        self, jira_provider: JiraProvider, ticket_id: str
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await jira_provider.get_ticket(ticket_id)
        assert "Format should be" in str(exc_info.value)

    async def test_fetches_and_maps(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ISSUE_URL, json=SAMPLE_ISSUE)

        ticket = await jira_provider.get_ticket("TEST-123")

        assert ticket.key == "TEST-123"
        assert ticket.priority == "urgent"
        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"].startswith("Basic ")

    async def test_numeric_id_accepted(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=re.compile(r"https://test\.atlassian\.net/rest/api/3/issue/10042\?.*"),
            json=SAMPLE_ISSUE,
        )

        ticket = await jira_provider.get_ticket("10042")
        assert ticket.id == "10042"

    async def test_result_cached(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ISSUE_URL, json=SAMPLE_ISSUE)

        first = await jira_provider.get_ticket("TEST-123")
        second = await jira_provider.get_ticket("TEST-123")

        assert first == second
        assert len(httpx_mock.get_requests()) == 1
        assert jira_provider.get_cache_stats().keys == ["ticket:TEST-123"]

    async def test_not_found(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ISSUE_URL, status_code=404)

        with pytest.raises(NotFoundError) as exc_info:
            await jira_provider.get_ticket("TEST-123")
        assert "Format should be" not in str(exc_info.value)

    async def test_bearer_auth_without_email(self, httpx_mock: HTTPXMock) -> None:
        provider = JiraProvider(
            JiraConfig(base_url="https://test.atlassian.net", token="pat-token-xyz", enabled=True)
        )
        httpx_mock.add_response(url=ISSUE_URL, json=SAMPLE_ISSUE)

        await provider.get_ticket("TEST-123")

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "Bearer pat-token-xyz"
        await provider.close()


class TestJiraCache:
    """Tests for cache accessors."""

    async def test_clear_cache(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ISSUE_URL, json=SAMPLE_ISSUE)
        httpx_mock.add_response(url=ISSUE_URL, json=SAMPLE_ISSUE)

        await jira_provider.get_ticket("TEST-123")
        jira_provider.clear_cache()

        assert jira_provider.get_cache_stats().size == 0
        await jira_provider.get_ticket("TEST-123")
        assert len(httpx_mock.get_requests()) == 2

    async def test_invalidate_cache(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=ISSUE_URL, json=SAMPLE_ISSUE)

        await jira_provider.get_ticket("TEST-123")

        assert jira_provider.invalidate_cache("ticket:TEST-123") == 1
        assert jira_provider.invalidate_cache("ticket:TEST-123") == 0
        assert jira_provider.get_cache_stats().size == 0

    async def test_key_and_numeric_id_share_entry(
        self, jira_provider: JiraProvider, httpx_mock: HTTPXMock
    ) -> None:
        by_id_url = re.compile(r"https://test\.atlassian\.net/rest/api/3/issue/10042\?.*")
        httpx_mock.add_response(url=by_id_url, json=SAMPLE_ISSUE)
        httpx_mock.add_response(url=by_id_url, json=SAMPLE_ISSUE)

        first = await jira_provider.get_ticket("10042")
        assert await jira_provider.get_ticket("TEST-123") == first
        assert jira_provider.get_cache_stats().keys == ["ticket:TEST-123"]
        assert len(httpx_mock.get_requests()) == 1

        # Invalidating the key also drops the numeric-id lookup
        jira_provider.invalidate_cache("ticket:TEST-123")
        await jira_provider.get_ticket("10042")
        assert len(httpx_mock.get_requests()) == 2


class TestJiraSearch:
    """Tests for the JQL-based list operations."""

    async def test_recent_tickets(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json=SAMPLE_SEARCH_RESPONSE)

        tickets = await jira_provider.get_recent_tickets(limit=5)

        assert [t.key for t in tickets] == ["TEST-123", "TEST-124"]
        request = httpx_mock.get_request()
        assert request is not None
        assert request.url.params["jql"] == "ORDER BY updated DESC"
        assert request.url.params["maxResults"] == "5"

    async def test_my_work_jql(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": []})

        assert await jira_provider.get_my_work() == []

        request = httpx_mock.get_request()
        assert request is not None
        assert "assignee = currentUser()" in request.url.params["jql"]

    async def test_search_escapes_quotes(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": [SAMPLE_ISSUE]})

        await jira_provider.search_by_text('login "bug"')

        request = httpx_mock.get_request()
        assert request is not None
        assert request.url.params["jql"] == 'text ~ "login \\"bug\\"" ORDER BY updated DESC'

    async def test_projects_filter(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": []})

        await jira_provider.get_recent_tickets_for_projects(["ABC", "XYZ"])

        request = httpx_mock.get_request()
        assert request is not None
        assert request.url.params["jql"] == 'project in ("ABC","XYZ") ORDER BY updated DESC'

    async def test_projects_filter_escapes_keys(
        self, jira_provider: JiraProvider, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=SEARCH_URL, json={"issues": []})

        await jira_provider.get_recent_tickets_for_projects(['AB") OR project = "X'])

        request = httpx_mock.get_request()
        assert request is not None
        assert request.url.params["jql"] == (
            'project in ("AB\\") OR project = \\"X") ORDER BY updated DESC'
        )

    async def test_get_projects(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url="https://test.atlassian.net/rest/api/3/project/search",
            json={"values": [{"key": "ABC", "name": "Alpha", "id": "1"}]},
        )

        assert await jira_provider.get_projects() == [{"key": "ABC", "name": "Alpha"}]

    async def test_get_boards(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url="https://test.atlassian.net/rest/agile/1.0/board?maxResults=50",
            json={"values": [{"id": 7, "name": "Team board", "type": "scrum"}]},
        )

        boards = await jira_provider.get_boards()
        assert boards == [{"id": 7, "name": "Team board", "type": "scrum"}]


class TestJiraValidateConfig:
    """Tests for validate_config."""

    async def test_valid(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url="https://test.atlassian.net/rest/api/3/myself",
            json={"accountId": "abc"},
        )
        assert await jira_provider.validate_config() is True

    async def test_unauthorized(self, jira_provider: JiraProvider, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url="https://test.atlassian.net/rest/api/3/myself", status_code=401)
        assert await jira_provider.validate_config() is False

    async def test_missing_token(self) -> None:
        provider = JiraProvider(JiraConfig(base_url="https://test.atlassian.net"))
        assert await provider.validate_config() is False

    def test_provider_name(self, jira_provider: JiraProvider) -> None:
        assert jira_provider.get_provider_name() == "jira"


class TestHelpers:
    """Tests for module-level helpers."""

    def test_escape_jql(self) -> None:
        assert escape_jql('a "b" \\c') == 'a \\"b\\" \\\\c'

    def test_adf_none(self) -> None:
        assert extract_text_from_adf(None) == ""

    def test_adf_heading_and_paragraph(self) -> None:
        adf = {
            "type": "doc",
            "content": [
                {"type": "heading", "content": [{"type": "text", "text": "Title"}]},
                {"type": "paragraph", "content": [{"type": "text", "text": "Body"}]},
            ],
        }
        assert extract_text_from_adf(adf) == "Title\nBody"
