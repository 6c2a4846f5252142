import logging
import re
from urllib.parse import unquote, urlencode

from flask import Flask, jsonify, request

import settings
from manifest_utils.errors import FetchFailed, ManifestError
from manifest_utils.fetch_utils import resolve_manifest
from manifest_utils.logging_utils import configure as configure_logging
from manifest_utils.logging_utils import manifest_context
from manifest_utils.url_utils import fix_manifest_url

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
TRUTHY = {"1", "true", "yes", "on"}

logger = logging.getLogger(__name__)

configure_logging(env=settings.ENV, level=settings.LOG_LEVEL)

app = Flask(__name__)
app.json.sort_keys = False
# keep `/manifest/https://...` from being redirected to `https:/...`
app.url_map.merge_slashes = False


def bad_request(message):
    return jsonify(statusCode=400, error="Bad Request", message=message), 400


def fetch_handler(manifest_url):
    guess = request.args.get("guess", "").strip().lower() in TRUTHY
    with manifest_context(manifest_url, guess=guess):
        try:
            result = resolve_manifest(manifest_url, guess=guess, timeout=settings.TIMEOUT)
        except FetchFailed as e:
            message = str(e.status_code) if e.status_code else str(e)
            logger.warning("Fetching %s failed: %s", manifest_url, message)
            return bad_request(message)
        except ManifestError as e:
            logger.warning("Resolving %s failed: %s", manifest_url, e)
            return bad_request(str(e))
    return jsonify(result.to_dict())


@app.after_request
def add_cors_headers(response):
    if settings.CORS:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Headers"] = "Accept, Content-Type"
    return response


@app.get("/healthz")
def healthz():
    return "ok", 200


def bare_query_url():
    """`/manifest?https://example.com/` carries the URL as the whole query string."""
    query = unquote(request.query_string.decode("utf-8", "replace")).strip()
    if URL_PATTERN.match(query):
        return query
    return ""


@app.get("/manifest")
def manifest():
    manifest_url = request.args.get("url", "").strip() or bare_query_url()
    if not manifest_url:
        return bad_request('"url" is required')
    if not URL_PATTERN.match(manifest_url):
        return bad_request('"url" must start with http:// or https://')
    return fetch_handler(manifest_url)


@app.get("/manifest/<path:target>")
def manifest_path(target):
    extra = [(k, v) for k, v in request.args.items(multi=True) if k != "guess"]
    if extra:
        target = f"{target}?{urlencode(extra)}"
    manifest_url = fix_manifest_url(target)
    if not manifest_url:
        return bad_request(f"Not a manifest URL: {target}")
    return fetch_handler(manifest_url)


if __name__ == '__main__':
    app.run(debug=settings.ENV == "development", host=settings.HOST, port=settings.PORT)
