import pytest
import requests


def make_response(url: str, body: str = "", status: int = 200, content_type: str = "text/html") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    resp.headers["Content-Type"] = content_type
    resp.url = url
    return resp


class FakeWeb:
    """Stands in for the network: url -> (status, body, content type) or an exception."""

    def __init__(self) -> None:
        self.routes: dict = {}
        self.redirects: dict = {}
        self.calls: list[str] = []
        self.timeouts: list = []

    def add(self, url, body="", status=200, content_type="text/html"):
        self.routes[url] = (status, body, content_type)

    def add_json(self, url, body, status=200):
        self.add(url, body, status, "application/manifest+json")

    def fail(self, url, exc):
        self.routes[url] = exc

    def redirect(self, url, to):
        self.redirects[url] = to

    def get(self, url, **kwargs):
        self.calls.append(url)
        self.timeouts.append(kwargs.get("timeout"))
        final = self.redirects.get(url, url)
        route = self.routes.get(final)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return make_response(final, "Not Found", 404, "text/plain")
        status, body, content_type = route
        return make_response(final, body, status, content_type)


@pytest.fixture
def web(monkeypatch):
    fake = FakeWeb()
    monkeypatch.setattr(requests.Session, "get", lambda self, url, **kw: fake.get(url, **kw))
    return fake
