"""Gmail implementation of the mailbox client."""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Any, Iterator

import structlog
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from ..errors import ConfigurationError
from .remote import AttachmentRef, MailMessage, MessagePage

GMAIL_READONLY_SCOPE = "https://www.googleapis.com/auth/gmail.readonly"


class GmailMailboxClient:
    """Thin adapter over the Gmail v1 API.

    The OAuth consent flow is not handled here: a previously authorized
    user token file is required.
    """

    def __init__(self, service: Any, *, user_id: str = "me") -> None:
        self._service = service
        self._user_id = user_id

    @classmethod
    def from_token_file(cls, token_path: str | Path, *, user_id: str = "me") -> "GmailMailboxClient":
        logger = structlog.get_logger(__name__)
        path = Path(token_path)
        if not path.exists():
            raise ConfigurationError(f"Gmail token file not found: {path}")
        try:
            credentials = Credentials.from_authorized_user_file(str(path), [GMAIL_READONLY_SCOPE])
            if not credentials.valid:
                if not (credentials.expired and credentials.refresh_token):
                    raise ConfigurationError("Gmail token is invalid; authorize again")
                credentials.refresh(Request())
                path.write_text(credentials.to_json(), encoding="utf-8")
                logger.info("gmail.token_refreshed", path=str(path))
            service = build("gmail", "v1", credentials=credentials, cache_discovery=False)
        except (GoogleAuthError, ValueError, OSError) as exc:
            raise ConfigurationError(f"Unable to create Gmail client: {exc}") from exc
        return cls(service, user_id=user_id)

    def list_messages(
        self,
        query: str,
        *,
        page_token: str | None = None,
        max_results: int = 100,
    ) -> MessagePage:
        params: dict[str, Any] = {"userId": self._user_id, "q": query, "maxResults": max_results}
        if page_token:
            params["pageToken"] = page_token
        response = self._service.users().messages().list(**params).execute()
        return MessagePage(
            message_ids=[item["id"] for item in response.get("messages", [])],
            next_page_token=response.get("nextPageToken") or None,
        )

    def get_message(self, message_id: str) -> MailMessage:
        message = (
            self._service.users()
            .messages()
            .get(userId=self._user_id, id=message_id)
            .execute()
        )
        payload = message.get("payload", {})
        return MailMessage(
            message_id=message_id,
            sender=_header(payload, "From"),
            attachments=list(_attachment_parts(payload)),
        )

    def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        attachment = (
            self._service.users()
            .messages()
            .attachments()
            .get(userId=self._user_id, messageId=message_id, id=attachment_id)
            .execute()
        )
        data = attachment.get("data", "")
        return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _header(payload: dict[str, Any], name: str) -> str | None:
    for header in payload.get("headers", []):
        if str(header.get("name", "")).lower() == name.lower():
            return header.get("value")
    return None


def _attachment_parts(part: dict[str, Any]) -> Iterator[AttachmentRef]:
    filename = part.get("filename")
    attachment_id = (part.get("body") or {}).get("attachmentId")
    if filename and attachment_id:
        yield AttachmentRef(filename=filename, attachment_id=attachment_id)
    for child in part.get("parts", []) or []:
        yield from _attachment_parts(child)


__all__ = ["GmailMailboxClient", "GMAIL_READONLY_SCOPE"]
