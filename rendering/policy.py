"""
Resource-blocking policy applied to every sub-request during rendering.
Only the document itself is needed to locate the JSON and next-page links,
so every other resource type is aborted.
"""

BLOCKED_RESOURCE_TYPES = frozenset({
    "stylesheet",
    "image",
    "media",
    "font",
    "script",
    "texttrack",
    "xhr",
    "fetch",
    "eventsource",
    "websocket",
    "manifest",
    "other",
})


def is_resource_allowed(resource_type: str) -> bool:
    # Unknown types fall under the "other" catch-all
    if not resource_type:
        return False
    resource_type = resource_type.lower()
    if resource_type in BLOCKED_RESOURCE_TYPES:
        return False
    return resource_type == "document"
