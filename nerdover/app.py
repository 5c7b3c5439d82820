"""The HTTP API: routes, authentication and CORS."""

from __future__ import annotations

import argparse
import logging
import os
import posixpath
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request

from nerdover.auth import AuthError, AuthService, GoogleTokenVerifier
from nerdover.categories import Category, CategoryService
from nerdover.features import FeatureService
from nerdover.lessons import (
    ContentFetchError,
    CreateLessonDto,
    LessonService,
    UpdateContentDto,
    UpdateLessonDto,
    fetch_content,
)
from nerdover.slug import validate_slug
from nerdover.stores import BlobStore, DocumentStore

log = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
PUBLIC_PATHS = frozenset({f"{API_PREFIX}/auth/"})
DEFAULT_PORT = 8080
DEFAULT_ORIGINS = ("http://localhost:4200",)

_ALLOW_METHODS = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
_ALLOW_HEADERS = "Origin,Content-Type,Accept,Authorization"
_EXPOSE_HEADERS = "Content-Length,Authorization"
_MAX_AGE = str(12 * 60 * 60)

_FAILURES = (LookupError, ValueError, OSError, ContentFetchError)


@dataclass(frozen=True)
class Settings:
    """Server configuration."""

    jwt_secret: str = ""
    google_client_id: str = ""
    bucket_name: str = ""
    project_id: str = ""
    port: int = DEFAULT_PORT
    data_file: str | None = None
    allowed_origins: tuple[str, ...] = DEFAULT_ORIGINS

    @classmethod
    def from_env(cls) -> Settings:
        """Read the settings from environment variables."""
        env = os.environ
        return cls(
            jwt_secret=env.get("JWT_SECRET", ""),
            google_client_id=env.get("GOOGLE_CLIENT_ID", ""),
            bucket_name=env.get("BUCKET_NAME", ""),
            project_id=env.get("PROJECT_ID", ""),
            port=int(env.get("PORT") or DEFAULT_PORT),
            data_file=env.get("DATA_FILE") or None,
        )


def _error(status: int, message: str) -> tuple[Response, int]:
    return jsonify({"error": message}), status


def _list_response(items: Iterable[Any]) -> Response:
    payload = [item.to_dict() if hasattr(item, "to_dict") else item for item in items]
    return jsonify(payload or None)


def _body() -> Any:
    return request.get_json(silent=True)


def _install_cors(app: Flask, origins: Iterable[str]) -> None:
    allowed = frozenset(origins)

    @app.before_request
    def _cors_check() -> Response | None:
        origin = request.headers.get("Origin")
        if not origin:
            return None
        if origin not in allowed:
            return Response(status=403)
        if request.method == "OPTIONS":
            response = Response(status=204)
            response.headers["Access-Control-Allow-Methods"] = _ALLOW_METHODS
            response.headers["Access-Control-Allow-Headers"] = _ALLOW_HEADERS
            response.headers["Access-Control-Max-Age"] = _MAX_AGE
            return response
        return None

    @app.after_request
    def _cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin")
        if origin and origin in allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            if request.method != "OPTIONS":
                response.headers["Access-Control-Expose-Headers"] = _EXPOSE_HEADERS
            response.vary.add("Origin")
        return response


def _install_auth(app: Flask, auth: AuthService) -> None:
    @app.before_request
    def _authenticate() -> Response | None:
        rule = request.url_rule
        if rule is None or rule.rule in PUBLIC_PATHS:
            return None
        header = request.headers.get("Authorization", "")
        scheme, sep, credentials = header.partition(" ")
        if not sep or scheme != "Bearer":
            return Response(status=401)
        try:
            auth.verify_access_token(credentials)
        except AuthError:
            return Response(status=401)
        return None

    @app.post(f"{API_PREFIX}/auth/")
    def login_with_google():
        body = _body()
        google_credential = body.get("idToken") if isinstance(body, dict) else None
        if not isinstance(google_credential, str) or not google_credential:
            return _error(400, "Missing idToken")
        try:
            issued = auth.login_with_google(google_credential)
        except AuthError as exc:
            return _error(401, str(exc))
        return jsonify({"accessToken": issued})


def _install_categories(app: Flask, categories: CategoryService) -> None:
    base = f"{API_PREFIX}/categories"

    @app.get(f"{base}/")
    def list_categories():
        try:
            return _list_response(categories.list_all())
        except _FAILURES as exc:
            return _error(500, str(exc))

    @app.get(f"{base}/<category_id>")
    def get_category(category_id: str):
        try:
            return jsonify(categories.get(category_id).to_dict())
        except _FAILURES as exc:
            return _error(404, str(exc))

    @app.post(f"{base}/")
    def create_category():
        try:
            category = Category.from_dict(_body())
            validate_slug(category.slug)
            created = categories.create(category)
        except _FAILURES as exc:
            return _error(400, str(exc))
        return jsonify(created.to_dict()), 201

    @app.put(f"{base}/<category_id>")
    def update_category(category_id: str):
        try:
            updated = categories.update(category_id, Category.from_dict(_body()))
        except _FAILURES as exc:
            return _error(400, str(exc))
        return jsonify(updated.to_dict())

    @app.delete(f"{base}/<category_id>")
    def delete_category(category_id: str):
        try:
            return jsonify(categories.delete(category_id).to_dict())
        except _FAILURES as exc:
            return _error(404, str(exc))


def _install_lessons(app: Flask, lessons: LessonService) -> None:
    base = f"{API_PREFIX}/lessons"

    @app.get(f"{base}/")
    def list_lessons():
        try:
            return _list_response(lessons.list_all())
        except _FAILURES as exc:
            return _error(500, str(exc))

    @app.get(f"{base}/<lesson_id>")
    def get_lesson(lesson_id: str):
        try:
            return jsonify(lessons.get(lesson_id).to_dict())
        except _FAILURES as exc:
            return _error(404, str(exc))

    @app.post(f"{base}/")
    def create_lesson():
        try:
            dto = CreateLessonDto.from_dict(_body())
            validate_slug(dto.slug)
            validate_slug(dto.category_slug)
            created = lessons.create(dto)
        except _FAILURES as exc:
            return _error(400, str(exc))
        return jsonify(created.to_dict()), 201

    @app.put(f"{base}/<lesson_id>")
    def update_lesson(lesson_id: str):
        try:
            updated = lessons.update(lesson_id, UpdateLessonDto.from_dict(_body()))
        except _FAILURES as exc:
            return _error(400, str(exc))
        return jsonify(updated.to_dict())

    @app.patch(f"{base}/<lesson_id>")
    def update_lesson_content(lesson_id: str):
        try:
            updated = lessons.update_content(lesson_id, UpdateContentDto.from_dict(_body()))
        except _FAILURES as exc:
            return _error(400, str(exc))
        return jsonify(updated.to_dict())

    @app.delete(f"{base}/<lesson_id>")
    def delete_lesson(lesson_id: str):
        try:
            return jsonify(lessons.delete(lesson_id).to_dict())
        except _FAILURES as exc:
            return _error(404, str(exc))


def _install_features(app: Flask, features: FeatureService) -> None:
    base = f"{API_PREFIX}/features"

    @app.get(f"{base}/")
    def export_lessons():
        try:
            archive = features.export_lessons()
        except _FAILURES as exc:
            return _error(500, f"Export file failed: {exc}")
        filename = f"export_{int(time.time())}.zip"
        return Response(
            archive,
            mimetype="application/zip",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.get(f"{base}/images")
    def list_images():
        try:
            return _list_response(features.list_images())
        except _FAILURES as exc:
            return _error(500, f"Get images failed: {exc}")

    @app.post(f"{base}/images")
    def upload_image():
        upload = request.files.get("image")
        if upload is None:
            return _error(400, "Failed to read image: no such file")
        content_type = upload.content_type or ""
        if not content_type.startswith("image/"):
            return _error(400, "File is not an image")
        name = posixpath.basename(upload.filename or "")
        try:
            url = features.upload_image(upload.read(), name, content_type)
        except _FAILURES as exc:
            return _error(500, f"Upload failed: {exc}")
        return jsonify({"url": url})


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    blobs: BlobStore | None = None,
    verifier: Callable[[str], dict[str, Any]] | None = None,
    fetch: Callable[[str], str] | None = None,
) -> Flask:
    """Build the Flask application with every route registered."""
    settings = settings or Settings.from_env()
    store = store if store is not None else DocumentStore(settings.data_file)
    blobs = blobs if blobs is not None else BlobStore(settings.bucket_name)
    verifier = verifier or GoogleTokenVerifier(settings.google_client_id)
    fetch = fetch or fetch_content

    auth = AuthService(store, settings.jwt_secret, verifier)
    categories = CategoryService(store)
    lessons = LessonService(store, blobs, categories, fetch)
    features = FeatureService(blobs, categories, lessons, fetch)

    app = Flask(__name__)
    app.url_map.strict_slashes = False

    _install_cors(app, settings.allowed_origins)
    _install_auth(app, auth)
    _install_categories(app, categories)
    _install_lessons(app, lessons)
    _install_features(app, features)
    return app


def main(argv: list[str] | None = None) -> int:
    """Load the environment and serve the API."""
    parser = argparse.ArgumentParser(prog="nerdover", description="Serve the lesson API.")
    parser.add_argument("--env-file", default=".env", help="file of environment variables")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    parser.add_argument("--port", type=int, help="port to listen on (default: $PORT or 8080)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    if os.path.exists(args.env_file):
        load_dotenv(args.env_file)
    else:
        log.warning("Warning: %s file not found, continuing without it", args.env_file)

    settings = Settings.from_env()
    app = create_app(settings)
    app.run(host=args.host, port=args.port or settings.port)
    return 0