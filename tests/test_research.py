"""Tests for the composite research operations, against a mocked OpenAlex."""

import asyncio
from dataclasses import replace

import httpx
import pytest

from conftest import list_response, make_work
from openalex_mcp.core import research
from openalex_mcp.core.client import OpenAlexClient
from openalex_mcp.core.errors import UpstreamError


def router(routes: dict):
    """Answer by URL path; unknown paths get a 404."""

    def answer(request: httpx.Request):
        path = request.url.raw_path.decode().split("?")[0]
        if path in routes:
            value = routes[path]
            return value(request) if callable(value) else value
        return httpx.Response(404, json={"error": "not found"})

    return answer


def authorship(author_id: str, name: str, orcid: str | None = None) -> dict:
    return {"author": {"id": f"https://openalex.org/{author_id}", "display_name": name, "orcid": orcid}}


class TestWorkSearch:

    @pytest.mark.asyncio
    async def test_year_range_and_bare_sort(self, make_client):
        client, fake = make_client(router({"/works": list_response([make_work()])}))
        async with client:
            result = await research.search_works(
                client, from_publication_year=2020, to_publication_year=2023, sort="cited_by_count",
            )
        params = fake.params()
        assert params["filter"] == "publication_year:2020-2023"
        assert params["sort"] == "cited_by_count:desc"
        assert params["per_page"] == "10"
        assert len(result.results) == 1

    @pytest.mark.asyncio
    async def test_query_and_filters(self, make_client):
        client, fake = make_client(router({"/works": list_response([])}))
        async with client:
            await research.search_works(
                client, query="crispr", is_oa=True, type="article", page=3, per_page=50,
            )
        params = fake.params()
        assert params["search"] == "crispr"
        assert params["filter"] == "is_oa:true,type:article"
        assert params["page"] == "3"
        assert params["per_page"] == "50"

    @pytest.mark.asyncio
    async def test_topic_search_defaults_to_relevance(self, make_client):
        client, fake = make_client(router({"/works": list_response([])}))
        async with client:
            await research.search_by_topic(client, "graph neural networks", from_year=2019)
        params = fake.params()
        assert params["search"] == "graph neural networks"
        assert params["sort"] == "relevance_score:desc"
        assert params["filter"] == "publication_year:>2018"

    @pytest.mark.asyncio
    async def test_get_entity_projects_works_only(self, make_client):
        author = {"id": "https://openalex.org/A1", "display_name": "Ada"}
        client, fake = make_client(router({"/works/W1": make_work(), "/authors/A1": author}))
        async with client:
            work = await research.get_entity(client, "works", "W1")
            raw = await research.get_entity(client, "authors", "A1")
        assert work.abstract == "the cat sat on the mat"
        assert raw == author


class TestTopCited:

    @pytest.mark.asyncio
    async def test_default_floor(self, make_client):
        client, fake = make_client(router({"/works": list_response([])}))
        async with client:
            await research.get_top_cited_works(client, query="transformers")
        params = fake.params()
        assert params["filter"] == "cited_by_count:>49"
        assert params["sort"] == "cited_by_count:desc"
        assert params["search"] == "transformers"

    @pytest.mark.asyncio
    async def test_custom_floor_with_years(self, make_client):
        client, fake = make_client(router({"/works": list_response([])}))
        async with client:
            await research.get_top_cited_works(client, topic="ecology", min_citations=1000, from_year=2010, to_year=2020)
        assert fake.params()["filter"] == "publication_year:2010-2020,cited_by_count:>999"
        assert fake.params()["search"] == "ecology"

    @pytest.mark.asyncio
    async def test_zero_disables_floor(self, make_client):
        client, fake = make_client(router({"/works": list_response([])}))
        async with client:
            await research.get_top_cited_works(client, query="x", min_citations=0)
        assert "filter" not in fake.params()


class TestCitations:

    @pytest.mark.asyncio
    async def test_citations_filter(self, make_client):
        client, fake = make_client(router({"/works": list_response([make_work("W9")], count=77)}))
        async with client:
            result = await research.get_work_citations(client, "W1", page=2, sort="publication_date")
        params = fake.params()
        assert params["filter"] == "cites:W1"
        assert params["page"] == "2"
        assert params["sort"] == "publication_date:desc"
        assert result.meta.count == 77

    @pytest.mark.asyncio
    async def test_citations_resolve_doi_first(self, make_client):
        routes = {
            "/works/doi:10.1234/w1": make_work("W1"),
            "/works": list_response([]),
        }
        client, fake = make_client(router(routes))
        async with client:
            await research.get_work_citations(client, "10.1234/w1")
        assert fake.paths() == ["/works/doi:10.1234/w1", "/works"]
        assert fake.params()["filter"] == "cites:W1"

    @pytest.mark.asyncio
    async def test_references(self, make_client):
        client, fake = make_client(router({"/works/W1": make_work()}))
        async with client:
            refs = await research.get_work_references(client, "W1")
        assert refs.count == 3
        assert refs.work_ids[0] == "https://openalex.org/R0"

    @pytest.mark.asyncio
    async def test_citation_network(self, make_client):
        focal = make_work("W1", referenced_works=[f"https://openalex.org/R{i}" for i in range(80)])
        routes = {
            "/works/W1": focal,
            "/works": list_response([make_work(f"C{i}") for i in range(5)], count=1500),
        }
        client, fake = make_client(router(routes))
        async with client:
            network = await research.get_citation_network(client, "W1", max_citing=5, max_references=20)

        assert network.central_work.id == "https://openalex.org/W1"
        assert network.citing_works.count == 1500
        assert len(network.citing_works.works) == 5
        assert network.referenced_works.count == 20
        assert network.referenced_works.work_ids == [f"https://openalex.org/R{i}" for i in range(20)]
        # References are never resolved: one focal fetch, one citing query.
        assert sorted(fake.paths()) == ["/works", "/works/W1"]
        citing_request = next(r for r in fake.requests if r.url.path == "/works")
        assert citing_request.url.params["filter"] == "cites:W1"
        assert citing_request.url.params["per_page"] == "5"

    @pytest.mark.asyncio
    async def test_citation_network_defaults(self, make_client):
        focal = make_work("W1", referenced_works=[f"https://openalex.org/R{i}" for i in range(80)])
        client, fake = make_client(router({"/works/W1": focal, "/works": list_response([])}))
        async with client:
            network = await research.get_citation_network(client, "https://openalex.org/W1")
        assert network.referenced_works.count == 50
        citing_request = next(r for r in fake.requests if r.url.path == "/works")
        assert citing_request.url.params["per_page"] == "50"


class TestRelatedWorks:

    @pytest.mark.asyncio
    async def test_missing_related_id_skipped(self, make_client):
        routes = {
            "/works/W1": make_work("W1"),
            "/works/X0": make_work("X0"),
            "/works/X2": make_work("X2"),
        }
        client, fake = make_client(router(routes))
        async with client:
            related = await research.get_related_works(client, "W1")
        assert related.requested == 3
        assert [w.id for w in related.related_works] == [
            "https://openalex.org/X0",
            "https://openalex.org/X2",
        ]

    @pytest.mark.asyncio
    async def test_per_page_limits_resolution(self, make_client):
        routes = {
            "/works/W1": make_work("W1"),
            "/works/X0": make_work("X0"),
        }
        client, fake = make_client(router(routes))
        async with client:
            related = await research.get_related_works(client, "W1", per_page=1)
        assert related.requested == 1
        assert fake.calls == 2


class TestAuthors:

    @pytest.mark.asyncio
    async def test_author_works_filter(self, make_client):
        client, fake = make_client(router({"/works": list_response([])}))
        async with client:
            await research.get_author_works(
                client, "https://openalex.org/A5023888391", from_year=2018, to_year=2022, sort="cited_by_count",
            )
        params = fake.params()
        assert params["filter"] == "authorships.author.id:A5023888391,publication_year:2018-2022"
        assert params["sort"] == "cited_by_count:desc"

    @pytest.mark.asyncio
    async def test_author_works_by_orcid(self, make_client):
        client, fake = make_client(router({"/works": list_response([])}))
        async with client:
            await research.get_author_works(client, "https://orcid.org/0000-0002-1825-0097")
        assert fake.params()["filter"] == "authorships.author.orcid:0000-0002-1825-0097"

    @pytest.mark.asyncio
    async def test_collaborators(self, make_client):
        works = [
            make_work("W1", authorships=[authorship("A1", "Focal"), authorship("A2", "Bea"), authorship("A3", "Cy")]),
            make_work("W2", authorships=[authorship("A1", "Focal"), authorship("A2", "Bea")]),
            make_work("W3", authorships=[authorship("A2", "Bea"), authorship("A4", "Dee"), authorship("A1", "Focal")]),
        ]
        client, fake = make_client(router({"/works": list_response(works)}))
        async with client:
            report = await research.get_author_collaborators(client, "https://openalex.org/A1")

        assert fake.params()["per_page"] == "200"
        assert fake.params()["filter"] == "authorships.author.id:A1"
        assert report.total_works_analyzed == 3
        assert [(c.name, c.count) for c in report.collaborators] == [("Bea", 3), ("Cy", 1), ("Dee", 1)]
        assert all(c.id != "https://openalex.org/A1" for c in report.collaborators)

    @pytest.mark.asyncio
    async def test_collaborators_short_id_and_threshold(self, make_client):
        works = [
            make_work("W1", authorships=[authorship("A1", "Focal"), authorship("A2", "Bea")]),
            make_work("W2", authorships=[authorship("A1", "Focal"), authorship("A2", "Bea"), authorship("A3", "Cy")]),
        ]
        client, fake = make_client(router({"/works": list_response(works)}))
        async with client:
            report = await research.get_author_collaborators(client, "A1", min_collaborations=2)
        assert [(c.name, c.count) for c in report.collaborators] == [("Bea", 2)]

    @pytest.mark.asyncio
    async def test_collaborators_excludes_focal_orcid(self, make_client):
        orcid = "https://orcid.org/0000-0002-1825-0097"
        works = [make_work("W1", authorships=[authorship("A1", "Focal", orcid), authorship("A2", "Bea")])]
        client, fake = make_client(router({"/works": list_response(works)}))
        async with client:
            report = await research.get_author_collaborators(client, orcid)
        assert [c.name for c in report.collaborators] == ["Bea"]

    @pytest.mark.asyncio
    async def test_entity_search(self, make_client):
        authors = [{"id": "https://openalex.org/A1", "display_name": "Ada"}]
        client, fake = make_client(router({"/authors": list_response(authors, count=9)}))
        async with client:
            result = await research.search_entities(
                client, "authors", query="ada", institution="MIT", works_count=">10",
            )
        assert result.meta.count == 9
        assert result.results == authors
        assert fake.params()["filter"] == "works_count:>10,institutions.display_name:MIT"

    @pytest.mark.asyncio
    async def test_source_search_hits_sources_endpoint(self, make_client):
        client, fake = make_client(router({"/sources": list_response([], count=0)}))
        async with client:
            result = await research.search_entities(client, "sources", query="nature", is_oa=True)
        assert fake.paths() == ["/sources"]
        assert fake.params()["filter"] == "is_oa:true"
        assert result.results == []


class TestLandscape:

    @pytest.mark.asyncio
    async def test_topic_trends_sorted_by_year(self, make_client):
        response = {
            "meta": {"count": 60},
            "group_by": [
                {"key": "2022", "key_display_name": "2022", "count": 30},
                {"key": "2020", "key_display_name": "2020", "count": 10},
                {"key": "2021", "key_display_name": "2021", "count": 20},
            ],
        }
        client, fake = make_client(router({"/works": response}))
        async with client:
            report = await research.analyze_topic_trends(client, "crispr", from_year=2020)
        assert fake.params()["group_by"] == "publication_year"
        assert fake.params()["filter"] == "publication_year:>2019"
        assert [g.key for g in report.groups] == ["2020", "2021", "2022"]
        assert report.total_works == 60

    @pytest.mark.asyncio
    async def test_geographic_distribution_sorted_by_count(self, make_client):
        response = {
            "meta": {"count": 10},
            "group_by": [
                {"key": "dk", "key_display_name": "Denmark", "count": 2},
                {"key": "us", "key_display_name": "United States", "count": 8},
            ],
        }
        client, fake = make_client(router({"/works": response}))
        async with client:
            report = await research.analyze_geographic_distribution(client, "wind energy")
        assert fake.params()["group_by"] == "institutions.country_code"
        assert [g.display_name for g in report.groups] == ["United States", "Denmark"]

    @pytest.mark.asyncio
    async def test_trending_topics(self, make_client):
        response = {
            "meta": {"count": 5000},
            "group_by": [
                {"key": "https://openalex.org/T1", "key_display_name": "Small", "count": 50},
                {"key": "https://openalex.org/T2", "key_display_name": "Big", "count": 900},
                {"key": "https://openalex.org/T3", "key_display_name": "Medium", "count": 300},
            ],
        }
        client, fake = make_client(router({"/works": response}))
        async with client:
            report = await research.get_trending_topics(client, current_year=2025, per_page=5)
        assert fake.params()["filter"] == "from_publication_date:2022-01-01"
        assert fake.params()["group_by"] == "topics.id"
        assert [(g.key, g.count) for g in report.groups] == [("T2", 900), ("T3", 300)]

    @pytest.mark.asyncio
    async def test_compare_research_areas_keeps_order(self, make_client):
        counts = {"solar": 120, "wind": 80, "tidal": 5}

        def works(request):
            return list_response([], count=counts[request.url.params["search"]], per_page=1)

        client, fake = make_client(router({"/works": works}))
        async with client:
            comparisons = await research.compare_research_areas(client, ["solar", "wind", "tidal"], from_year=2020)
        assert [(c.topic, c.total_works) for c in comparisons] == [("solar", 120), ("wind", 80), ("tidal", 5)]
        assert all(r.url.params["per_page"] == "1" for r in fake.requests)
        assert all(r.url.params["filter"] == "publication_year:>2019" for r in fake.requests)


class TestSimilarAndAutocomplete:

    @pytest.mark.asyncio
    async def test_find_similar_works(self, make_client):
        response = {"meta": {"count": 1}, "results": [{"score": 0.8, "work": make_work("W3")}]}
        client, fake = make_client(router({"/find/works": response}), api_key="secret")
        async with client:
            similar = await research.find_similar_works(
                client, "protein folding", count=5, from_publication_year=2020, is_oa=True,
            )
        assert fake.params()["filter"] == "publication_year:>2019,is_oa:true"
        assert similar.results[0].score == 0.8

    @pytest.mark.asyncio
    async def test_autocomplete(self, make_client):
        client, fake = make_client(router({"/autocomplete/institutions": {"results": []}}))
        async with client:
            result = await research.autocomplete(client, "stanf", "institutions")
        assert result == {"results": []}


class TestFanOut:

    @pytest.mark.asyncio
    async def test_in_flight_requests_capped(self, settings):
        related = [f"https://openalex.org/X{i}" for i in range(20)]
        in_flight = 0
        peak = 0

        async def handler(request):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            path = request.url.path
            if path == "/works/W1":
                return httpx.Response(200, json=make_work("W1", related_works=related))
            return httpx.Response(200, json=make_work(path.rsplit("/", 1)[-1]))

        config = replace(settings, max_concurrent_requests=3)
        async with OpenAlexClient(config, transport=httpx.MockTransport(handler)) as client:
            result = await research.get_related_works(client, "W1", per_page=20)

        assert len(result.related_works) == 20
        assert peak == 3

    @pytest.mark.asyncio
    async def test_failed_leg_cancels_the_other(self, settings):
        cancelled = []

        async def handler(request):
            if request.url.path == "/works":
                return httpx.Response(400, json={"error": "bad filter"})
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(request.url.path)
                raise
            return httpx.Response(200, json=make_work("W1"))

        async with OpenAlexClient(settings, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(UpstreamError):
                await research.get_citation_network(client, "W1")

        assert cancelled == ["/works/W1"]
