"""Shared fixtures: settings without backoff delays, a fake OpenAlex, sample records."""

from typing import Any, Callable

import httpx
import pytest

from openalex_mcp.core.client import OpenAlexClient
from openalex_mcp.core.config import Settings


class FakeOpenAlex:
    """Records every request and answers from a routing function.

    The router receives the httpx.Request and returns either an
    httpx.Response or a JSON-able object (sent with status 200).
    """

    def __init__(self, router: Callable[[httpx.Request], Any]):
        self.router = router
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.router(request)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def params(self, index: int = -1) -> dict[str, str]:
        return dict(self.requests[index].url.params)

    def paths(self) -> list[str]:
        return [r.url.raw_path.decode().split("?")[0] for r in self.requests]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        email="researcher@example.org",
        retry_initial_delay=0.0,
        retry_max_delay=0.0,
    )


@pytest.fixture
def make_client(settings):
    """Factory: make_client(router, **setting_overrides) -> (client, fake)."""

    def factory(router: Callable[[httpx.Request], Any], **overrides) -> tuple[OpenAlexClient, FakeOpenAlex]:
        fake = FakeOpenAlex(router)
        config = Settings(**{**settings.__dict__, **overrides})
        return OpenAlexClient(config, transport=httpx.MockTransport(fake)), fake

    return factory


def make_work(work_id: str = "W1", n_authors: int = 2, **fields) -> dict:
    """A partial OpenAlex work record, shaped like the real API's."""
    work = {
        "id": f"https://openalex.org/{work_id}",
        "doi": f"https://doi.org/10.1234/{work_id.lower()}",
        "title": f"Work {work_id}",
        "display_name": f"Work {work_id}",
        "publication_year": 2021,
        "publication_date": "2021-06-01",
        "cited_by_count": 42,
        "type": "article",
        "authorships": [
            {
                "author_position": "first" if i == 0 else "middle",
                "author": {
                    "id": f"https://openalex.org/A{i}",
                    "display_name": f"Author {i}",
                    "orcid": None,
                },
                "institutions": [
                    {"id": "https://openalex.org/I1", "display_name": "Univ One", "country_code": "US"},
                    {"id": "https://openalex.org/I2", "display_name": "Univ Two", "country_code": "DK"},
                    {"id": "https://openalex.org/I3", "display_name": "Univ Three", "country_code": "FR"},
                ],
                "countries": ["US"],
                "is_corresponding": i == 0,
                "raw_affiliation_strings": ["Dept. of Things, Univ One"],
            }
            for i in range(n_authors)
        ],
        "primary_topic": {
            "id": "https://openalex.org/T1",
            "display_name": "Machine Learning",
            "score": 0.99,
            "field": {"display_name": "Computer Science"},
            "subfield": {"display_name": "Artificial Intelligence"},
            "domain": {"display_name": "Physical Sciences"},
        },
        "open_access": {"is_oa": True, "oa_status": "gold", "oa_url": "https://oa.example.org/w1.pdf"},
        "primary_location": {
            "is_oa": True,
            "landing_page_url": "https://journal.example.org/w1",
            "pdf_url": None,
            "source": {"id": "https://openalex.org/S1", "display_name": "Journal of Tests"},
        },
        "best_oa_location": {"pdf_url": "https://oa.example.org/w1.pdf"},
        "abstract_inverted_index": {"the": [0, 4], "cat": [1], "sat": [2], "on": [3], "mat": [5]},
        "referenced_works": [f"https://openalex.org/R{i}" for i in range(3)],
        "related_works": [f"https://openalex.org/X{i}" for i in range(3)],
    }
    work.update(fields)
    return work


def list_response(results: list[dict], count: int | None = None, page: int = 1, per_page: int = 10) -> dict:
    return {
        "meta": {"count": len(results) if count is None else count, "page": page, "per_page": per_page},
        "results": results,
    }
