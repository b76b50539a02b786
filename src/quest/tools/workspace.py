"""
Workspace tools: mail, drive, documents, slides, sheets, forms, calendar and the image library.

Every tool here is a single request against the workspace server, so they are declared as a table
of :class:`Endpoint` rows rather than one hand-written coroutine each.  Path placeholders such as
``{fileId}`` are filled from the call arguments.
"""

from dataclasses import (
    dataclass,
    field,
)
from string import Formatter
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
)

from quest.tools import (
    Executor,
    ToolRegistry,
    object_schema,
    prop,
)
from quest.tools.http_client import McpClient

_USER_ID = prop("string", "User ID")


@dataclass(frozen=True)
class Endpoint:
    """One workspace operation exposed as a tool."""

    name: str
    description: str
    method: str
    path: str
    properties: Dict[str, Any]
    required: List[str]
    # Keys to send; None sends every argument except those used in the path
    fields: Optional[Tuple[str, ...]] = None
    defaults: Dict[str, Any] = field(default_factory=dict)

    def path_keys(self) -> List[str]:
        return [name for _, name, _, _ in Formatter().parse(self.path) if name]


ENDPOINTS: List[Endpoint] = [
    # Gmail
    Endpoint(
        "gmailSendEmail",
        "To send emails via Gmail",
        "POST",
        "/gmail/send",
        {
            "userId": _USER_ID,
            "to": prop("string", "Recipient email address"),
            "subject": prop("string", "Email subject"),
            "body": prop("string", "Email body content"),
            "contentType": prop("string", "Content type (default: text/plain)"),
        },
        ["userId", "to", "subject", "body"],
    ),
    Endpoint(
        "listGmailMessages",
        "To list or search messages in the user's Gmail inbox",
        "GET",
        "/gmail/messages",
        {
            "userId": _USER_ID,
            "maxResults": prop("number", "Maximum number of messages (default 10)"),
            "q": prop("string", "Gmail search query"),
        },
        ["userId"],
        fields=("userId", "maxResults", "q"),
        defaults={"maxResults": 10, "q": ""},
    ),
    Endpoint(
        "getGmailMessage",
        "To read a single Gmail message",
        "GET",
        "/gmail/messages/{messageId}",
        {"userId": _USER_ID, "messageId": prop("string", "Message ID")},
        ["userId", "messageId"],
        fields=("userId",),
    ),
    # Drive
    Endpoint(
        "driveListFiles",
        "To search and list files in Google Drive",
        "GET",
        "/drive/files",
        {
            "userId": _USER_ID,
            "pageSize": prop("number", "Number of files to return (default 10)"),
            "q": prop("string", "Search query for filtering files"),
        },
        ["userId"],
        fields=("userId", "pageSize", "q"),
        defaults={"pageSize": 10, "q": ""},
    ),
    Endpoint(
        "driveGetFile",
        "To get specific file metadata",
        "GET",
        "/drive/files/{fileId}",
        {"userId": _USER_ID, "fileId": prop("string", "Google Drive file ID")},
        ["userId", "fileId"],
        fields=("userId",),
    ),
    # Docs
    Endpoint(
        "docsReadDocument",
        "To extract text from Google Docs",
        "GET",
        "/docs/{documentId}",
        {"userId": _USER_ID, "documentId": prop("string", "Google Doc ID")},
        ["userId", "documentId"],
        fields=("userId",),
    ),
    Endpoint(
        "docsCreateDocument",
        "To create new Google Docs",
        "POST",
        "/docs/create",
        {
            "userId": _USER_ID,
            "name": prop("string", "Document name"),
            "content": prop("string", "Initial document content"),
            "parentFolderId": prop("string", "Optional parent folder ID"),
        },
        ["userId", "name"],
    ),
    Endpoint(
        "docsUpdateDocument",
        "To edit Google Doc content",
        "PATCH",
        "/docs/{documentId}",
        {
            "userId": _USER_ID,
            "documentId": prop("string", "Google Doc ID"),
            "requests": prop(
                "array",
                "Document update request objects",
                items={"type": "object"},
            ),
        },
        ["userId", "documentId", "requests"],
        fields=("userId", "documentId", "requests"),
    ),
    # Slides
    Endpoint(
        "slidesCreatePresentation",
        "To create presentations with slides",
        "POST",
        "/slides/create",
        {
            "userId": _USER_ID,
            "title": prop("string", "Presentation title"),
            "slidesData": prop("array", "Array of slide data objects", items={"type": "object"}),
        },
        ["userId", "title"],
    ),
    Endpoint(
        "slidesReadPresentation",
        "To read existing presentation content",
        "GET",
        "/slides/{presentationId}",
        {"userId": _USER_ID, "presentationId": prop("string", "Presentation ID")},
        ["userId", "presentationId"],
        fields=("userId",),
    ),
    # Sheets
    Endpoint(
        "sheetsCreateSpreadsheet",
        "To create a spreadsheet with sheets",
        "POST",
        "/sheets/create",
        {
            "userId": _USER_ID,
            "title": prop("string", "Document title"),
            "sheets": prop("array", "Sheets with a title and 2D data", items={"type": "object"}),
        },
        ["userId"],
    ),
    Endpoint(
        "sheetsReadSpreadsheet",
        "To read data from spreadsheets",
        "GET",
        "/sheets/{spreadsheetId}",
        {
            "userId": _USER_ID,
            "spreadsheetId": prop("string", "Spreadsheet ID"),
            "range": prop("string", "Cell range (e.g., 'Sheet1!A1:Z1000')"),
        },
        ["userId", "spreadsheetId"],
        fields=("userId", "range"),
        defaults={"range": "Sheet1!A1:Z1000"},
    ),
    Endpoint(
        "sheetsUpdateSpreadsheet",
        "To update a Google Sheet with new data, properties, and/or title",
        "PATCH",
        "/sheets/{spreadsheetId}",
        {
            "userId": _USER_ID,
            "spreadsheetId": prop("string", "The ID of the spreadsheet to update"),
            "title": prop("string", "Optional new title for the spreadsheet"),
            "sheets": prop("array", "Array of sheets to update or create", items={"type": "object"}),
        },
        ["userId", "spreadsheetId"],
        fields=("userId", "spreadsheetId", "title", "sheets"),
    ),
    # Forms
    Endpoint(
        "formsCreateForm",
        "To create forms with questions",
        "POST",
        "/forms/create",
        {
            "userId": _USER_ID,
            "title": prop("string", "Form title"),
            "questions": prop("array", "Question objects", items={"type": "object"}),
        },
        ["userId", "title"],
    ),
    Endpoint(
        "formsReadForm",
        "To get form structure and responses",
        "GET",
        "/forms/{formId}",
        {"userId": _USER_ID, "formId": prop("string", "Form ID")},
        ["userId", "formId"],
        fields=("userId",),
    ),
    Endpoint(
        "formsUpdateForm",
        "To update a Google Form",
        "PATCH",
        "/forms/{formId}",
        {
            "userId": _USER_ID,
            "formId": prop("string", "Form ID"),
            "requests": prop("array", "Form update request objects", items={"type": "object"}),
        },
        ["userId", "formId", "requests"],
        fields=("userId", "formId", "requests"),
    ),
    # Calendar
    Endpoint(
        "calendarGetEvents",
        "To retrieve upcoming calendar events",
        "GET",
        "/calendar/get-events",
        {
            "userId": _USER_ID,
            "calendarId": prop("string", "Calendar ID (default: primary)"),
            "maxResults": prop("number", "Maximum number of events to return"),
        },
        ["userId"],
        fields=("userId", "calendarId", "maxResults"),
    ),
    Endpoint(
        "calendarCreateEvent",
        "To create new calendar events",
        "POST",
        "/calendar/create-event",
        {
            "userId": _USER_ID,
            "calendarId": prop("string", "Calendar ID (default: primary)"),
            "event": prop("object", "Event details: summary, description, start, end, attendees"),
        },
        ["userId", "event"],
    ),
    Endpoint(
        "calendarUpdateEvent",
        "To update a calendar event",
        "PATCH",
        "/calendar/events/{eventId}",
        {
            "userId": _USER_ID,
            "calendarId": prop("string", "Calendar ID (default: primary)"),
            "eventId": prop("string", "Event ID to update"),
            "event": prop("object", "Updated event details"),
        },
        ["userId", "eventId", "event"],
        fields=("userId", "calendarId", "event"),
    ),
    # Image library
    Endpoint(
        "unsplashSearchImages",
        "To find images for presentations/documents",
        "GET",
        "/unsplash/search",
        {
            "userId": _USER_ID,
            "searchTerm": prop("string", "Image search term"),
            "per_page": prop("number", "Number of results for the search term, default is 1"),
        },
        ["userId", "searchTerm", "per_page"],
    ),
]


def _make_executor(client: McpClient, base_url: str, endpoint: Endpoint) -> Executor:
    path_keys = endpoint.path_keys()

    async def executor(args: Dict[str, Any]) -> Any:
        url = base_url + endpoint.path.format(**{k: args[k] for k in path_keys})
        merged = {**endpoint.defaults, **{k: v for k, v in args.items() if v is not None}}
        if endpoint.fields is None:
            payload = {k: v for k, v in merged.items() if k not in path_keys}
        else:
            payload = {k: merged.get(k) for k in endpoint.fields}

        if endpoint.method == "GET":
            return await client.get(url, payload)
        return await client.request(endpoint.method, url, json=payload)

    executor.__name__ = endpoint.name
    return executor


def register_workspace_tools(registry: ToolRegistry, client: McpClient, base_url: str) -> None:
    """Register every :data:`ENDPOINTS` row against *base_url*."""
    base_url = base_url.rstrip("/")
    for endpoint in ENDPOINTS:
        registry.register(
            endpoint.name,
            endpoint.description,
            object_schema(endpoint.properties, endpoint.required),
            _make_executor(client, base_url, endpoint),
        )
