"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- The webhook signature header as an apiKey-style security scheme, applied
  only to webhook operations

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Enrollment",
        "description": "Waitlist enrollment with unique, gapless positions.",
    },
    {
        "name": "Webhooks",
        "description": "Signed payment processor events (acknowledged at most once per event id).",
    },
    {
        "name": "Health",
        "description": "Liveness and readiness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI, *, signature_header: str) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and the signature scheme."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "WebhookSignature",
            {
                "type": "apiKey",
                "in": "header",
                "name": signature_header,
                "description": "t=<unix>,v1=<hex HMAC-SHA256 of '<t>.' + raw body>",
            },
        )

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/webhooks/"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj["security"] = [{"WebhookSignature": []}]

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[method-assign]
