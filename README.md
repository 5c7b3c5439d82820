# nerdover

An HTTP API for a small lesson-based content site. It manages lesson
categories and lessons, writes each lesson's Markdown content as a public
object in a blob store, accepts image uploads, and exports everything as a
zip archive ready to build a static site from.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
nerdover [--env-file .env] [--host 0.0.0.0] [--port PORT]
```

`nerdover` loads variables from the env file (default `.env`; a missing
file only logs a warning), builds the application with
`nerdover.app.create_app` and serves it with Flask's built-in server.

| Variable           | Meaning                                                    |
|--------------------|------------------------------------------------------------|
| `PORT`             | Port to listen on when `--port` is not given, `8080` unset |
| `JWT_SECRET`       | Secret used to sign and check access tokens                |
| `GOOGLE_CLIENT_ID` | Audience expected in Google ID tokens                      |
| `BUCKET_NAME`      | Bucket name used in the public URLs of stored objects      |
| `DATA_FILE`        | JSON file the document store is loaded from and saved to   |
| `PROJECT_ID`       | Read into `Settings.project_id`; not used otherwise        |

Cross-origin requests are accepted only from `http://localhost:4200`
(`Settings.allowed_origins`); other origins get `403`.

## Authentication

Every route under `/api/v1` needs an `Authorization: Bearer token` header
carrying an access token signed with `JWT_SECRET` (HS256, HS384 or HS512),
except the login route:

- `POST /api/v1/auth/` with `{"idToken": "..."}` checks a Google ID token
  against Google's published keys and issuer, looks up the user by the
  token's e-mail address in the `user` collection and answers
  `{"accessToken": "..."}`. The access token carries `email`, `name` and an
  expiry 24 hours ahead.

Requests without a valid token get `401`. There is no route for creating
users; put them in the `user` collection of the data file, e.g.

```json
{"user": {"alice": {"email": "alice@example.com", "name": "Alice"}}}
```

## Routes

Categories (`{"name": ..., "slug": ...}`):

- `GET /api/v1/categories/` — list all categories (`null` when there are none)
- `POST /api/v1/categories/` — create; the slug is the category's id
- `GET /api/v1/categories/<id>` — fetch one
- `PUT /api/v1/categories/<id>` — replace the name; the slug stays `<id>`
- `DELETE /api/v1/categories/<id>` — delete and return the deleted category

Lessons:

- `GET /api/v1/lessons/` — list all lessons (`null` when there are none)
- `POST /api/v1/lessons/` — create from `title`, `slug`, `categorySlug`,
  `categoryName` and an optional `cover`; the category must exist, and a
  public object `content/<categorySlug>.<slug>.md` holding `# <title>` is
  written for it
- `GET /api/v1/lessons/<id>` — fetch one, with its content downloaded from
  its `contentPath`
- `PUT /api/v1/lessons/<id>` — change `title` and/or `cover`
- `PATCH /api/v1/lessons/<id>` — replace the content with `{"content": ...}`
- `DELETE /api/v1/lessons/<id>` — delete and return the deleted lesson

Features:

- `GET /api/v1/features/` — download `export_<unix time>.zip` holding
  `menu.json` (every category with its lessons) and one
  `<categorySlug>.<slug>.json` file per lesson whose content could be
  downloaded
- `GET /api/v1/features/images` — list public URLs of uploaded images
- `POST /api/v1/features/images` — upload a multipart `image` field whose
  content type starts with `image/`; it is stored as
  `media/<unix time>_<filename>` and the answer is `{"url": ...}`

Slugs must start and end with a lower-case letter and may contain only
lower-case letters, digits and hyphens; `nerdover.slug.validate_slug`
applies the rule.

Errors are answered as `{"error": "<message>"}`.

## Using it as a library

The pieces can be used without the HTTP layer:

- `nerdover.stores.DocumentStore` and `nerdover.stores.BlobStore`
- `nerdover.categories.CategoryService`
- `nerdover.lessons.LessonService` and `nerdover.lessons.fetch_content`
- `nerdover.features.FeatureService` and `nerdover.features.build_menu`
- `nerdover.auth.AuthService` and `nerdover.auth.GoogleTokenVerifier`

`create_app` takes `settings`, `store`, `blobs`, `verifier` and `fetch`,
so tests can supply their own stores, ID-token verifier and content fetcher.

## What it does not do

- The blob store lives in memory only: lesson content and uploaded images
  are lost when the server stops, and the server does not serve them itself.
  Their URLs point at `https://storage.googleapis.com/<BUCKET_NAME>/...`,
  and fetching a lesson or exporting downloads content over HTTP from those
  URLs, so nothing is uploaded to a real cloud bucket.
- The document store is in memory, saved to `DATA_FILE` only when that is
  set; it is not a cloud database.