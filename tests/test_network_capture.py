import asyncio

from seatwatch.network_capture import capture_network_payload

from conftest import EVENT_ID, FakePage, FakeResponse

API = "https://services.ticketmaster.com/api/ismds/event"


def _capture(page: FakePage, timeout_ms: int = 50):
    return asyncio.run(capture_network_payload(page, EVENT_ID, timeout_ms))


def test_first_matching_json_response_wins() -> None:
    page = FakePage(
        responses=[
            FakeResponse(f"{API}/OTHER123/facets", {"tickets": ["wrong"]}),
            FakeResponse(f"{API}/{EVENT_ID}/facets", {"tickets": [{"sectionRow": "A"}]}, resource_type="fetch"),
            FakeResponse(f"{API}/{EVENT_ID}/quickpicks", {"tickets": ["later"]}),
        ]
    )

    assert _capture(page) == {"tickets": [{"sectionRow": "A"}]}
    assert page.removed_listeners == 1
    assert page.listeners["response"] == []


def test_document_and_script_responses_are_ignored() -> None:
    page = FakePage(
        responses=[
            FakeResponse(f"https://www.ticketmaster.com/x/event/{EVENT_ID}", {"a": 1}, resource_type="document"),
            FakeResponse(f"https://static.tmconst.com/{EVENT_ID}.js", {"a": 1}, resource_type="script"),
        ]
    )
    assert _capture(page) is None
    assert page.removed_listeners == 1


def test_unparseable_or_scalar_bodies_are_skipped() -> None:
    page = FakePage(
        responses=[
            FakeResponse(f"{API}/{EVENT_ID}/a", invalid_json=True),
            FakeResponse(f"{API}/{EVENT_ID}/b", "just a string"),
            FakeResponse(f"{API}/{EVENT_ID}/c", [{"offer": 1}]),
        ]
    )
    assert _capture(page) == [{"offer": 1}]


def test_timeout_without_responses_returns_none() -> None:
    page = FakePage()
    assert _capture(page, timeout_ms=10) is None
    assert page.removed_listeners == 1
