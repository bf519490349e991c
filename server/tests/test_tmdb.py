import httpx

from services.tmdb import TMDBClient, poster_url, release_year


def _client(handler, **kwargs) -> TMDBClient:
    return TMDBClient("key", transport=httpx.MockTransport(handler), **kwargs)


def test_poster_url():
    assert poster_url("/a.jpg") == "https://image.tmdb.org/t/p/w500/a.jpg"
    assert poster_url("/a.jpg", "w342") == "https://image.tmdb.org/t/p/w342/a.jpg"
    assert poster_url("/a.jpg", "huge") == "https://image.tmdb.org/t/p/w500/a.jpg"
    assert poster_url(None) is None


def test_release_year():
    assert release_year("2010-07-16") == 2010
    assert release_year("") is None
    assert release_year(None) is None
    assert release_year("n/a") is None


async def test_search_keeps_result_fields():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [
            {"id": 27205, "title": "Inception", "poster_path": "/i.jpg",
             "release_date": "2010-07-16", "overview": "Dreams.", "popularity": 90.1},
            {"title": "No id"},
        ]})

    client = _client(handler, bearer=False)
    results = await client.search("inception")
    await client.aclose()

    assert results == [{
        "id": 27205, "title": "Inception", "poster_path": "/i.jpg",
        "release_date": "2010-07-16", "overview": "Dreams.",
    }]
    assert seen[0].url.path == "/3/search/movie"
    assert seen[0].url.params["query"] == "inception"
    assert seen[0].url.params["api_key"] == "key"
    assert "Authorization" not in seen[0].headers


async def test_bearer_auth_uses_header():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": []})

    client = _client(handler, bearer=True)
    assert await client.search("dune") == []
    await client.aclose()

    assert seen[0].headers["Authorization"] == "Bearer key"
    assert "api_key" not in seen[0].url.params


async def test_empty_query_skips_request():
    def handler(request):
        raise AssertionError("no request expected")

    client = _client(handler)
    assert await client.search("") == []
    await client.aclose()


async def test_details_flattens_genres():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/3/movie/27205"
        return httpx.Response(200, json={
            "id": 27205, "title": "Inception", "poster_path": "/i.jpg",
            "release_date": "2010-07-16", "overview": "Dreams.", "runtime": 148,
            "genres": [{"id": 28, "name": "Action"}, {"id": 878, "name": "Science Fiction"}],
        })

    client = _client(handler)
    details = await client.details(27205)
    await client.aclose()

    assert details["runtime"] == 148
    assert details["genres"] == ["Action", "Science Fiction"]


async def test_failures_degrade_to_empty():
    def not_found(request):
        return httpx.Response(404, json={"status_message": "not found"})

    def broken(request):
        raise httpx.ConnectError("down", request=request)

    def garbage(request):
        return httpx.Response(200, content=b"<html>")

    for handler in (not_found, broken, garbage):
        client = _client(handler)
        assert await client.details(1) is None
        assert await client.search("x") == []
        await client.aclose()
