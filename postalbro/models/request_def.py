from __future__ import annotations

import copy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from postalbro.config import FILE_METHODS, FORM_CONTENT_TYPE, JSON_CONTENT_TYPE
from postalbro.errors import ValidationError
from postalbro.parsing.object_parser import parse_object


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FileAttachment(BaseModel):
    """A form field name bound to a local file."""
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    file_path: str = Field(alias="filePath")


class RequestDefinition(BaseModel):
    """A stored API call, as written to db.json / recent.json."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = ""
    method: str = ""
    url: str = ""
    # Stored entries may hold non-mapping values, e.g. a JSON array body
    data: Any = {}
    header: Any = {}
    query: Any = {}
    category: str = ""
    encoded: bool = False
    file: list[FileAttachment] = []
    multipart: bool = False
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")  # never set
    created_options: dict = Field(default_factory=dict, alias="createdOptions")

    @field_validator("data", "header", "query", mode="before")
    @classmethod
    def _empty_to_dict(cls, value):
        # Older entries may hold "" or null where a mapping is expected
        if value is None or value == "":
            return {}
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return value or ""

    @field_validator("file", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class Collection(BaseModel):
    """One storage file: ``{"apis": [...], "createdAt": ...}``, newest first."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    apis: list[RequestDefinition] = []
    created_at: str = Field(default_factory=utc_now, alias="createdAt")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


class UniqueApi(BaseModel):
    """A deduplicated entry ready for replay."""
    id: str = ""
    method: str
    url: str
    created_options: dict = {}


# ── Builder ───────────────────────────────────────────────────────────────────


class RequestOptions(BaseModel):
    """Raw command options for test/save, validated before anything is written.

    ``data``/``header``/``query`` may be JSON or relaxed strings, or mappings
    when replaying a stored definition (``data`` may then also be a list).
    ``file`` entries are ``"name:path"`` strings or ``{"filename", "filePath"}``
    mappings.
    """

    data: Union[str, dict, list] = ""
    header: Union[str, dict] = ""
    query: Union[str, dict] = ""
    category: str = ""
    encoded: bool = False
    multipart: bool = False
    file: list[Union[str, dict]] = []

    @field_validator("data", "header", "query", "category", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("file", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    @model_validator(mode="after")
    def _check_exclusive(self):
        if self.encoded and self.multipart:
            raise ValueError("Options encoded and multipart cannot be used together.")
        return self

    @classmethod
    def from_options(cls, options: dict | None) -> "RequestOptions":
        """Validate a plain options dict, raising our ValidationError."""
        try:
            return cls.model_validate(options or {})
        except PydanticValidationError as exc:
            messages = "; ".join(err["msg"].removeprefix("Value error, ") for err in exc.errors())
            raise ValidationError(messages) from exc

    def build(self, method: str, url: str, api_id: str, now: str | None = None) -> RequestDefinition:
        """Validate everything and return a new RequestDefinition."""
        method = (method or "").strip().lower()
        url = (url or "").strip()
        if not method or not url:
            raise ValidationError("HTTP method and URL are required.")

        files = self._resolve_files(method)
        data = self._parse_field(self.data, "--data (-d)", keep_list=True)
        query = self._parse_field(self.query, "--query (-q)")
        user_headers = self._parse_field(self.header, "--header (-H)")

        return RequestDefinition(
            id=api_id,
            method=method,
            url=url,
            data=data,
            header=self._headers_for_mode(user_headers),
            query=query,
            category=self.category,
            encoded=self.encoded,
            file=files,
            multipart=self.multipart,
            created_at=now or utc_now(),
            updated_at=None,
            created_options=self.snapshot(),
        )

    def snapshot(self) -> dict:
        """Deep copy of the options as given, kept for later replay."""
        return copy.deepcopy(self.model_dump())

    # ── internals ─────────────────────────────────────────────────────

    @staticmethod
    def _parse_field(value, flag: str, keep_list: bool = False):
        if keep_list and isinstance(value, list):
            # replaying a stored array body
            return copy.deepcopy(value)
        try:
            return parse_object(value)
        except ValueError as exc:
            raise ValidationError(f"Invalid JSON provided for {flag}") from exc

    def _headers_for_mode(self, user_headers: dict) -> dict:
        if self.multipart:
            # httpx sets the multipart Content-Type with its boundary
            return dict(user_headers)
        if any(key.lower() == "content-type" for key in user_headers):
            return dict(user_headers)
        default = FORM_CONTENT_TYPE if self.encoded else JSON_CONTENT_TYPE
        return {"Content-Type": default, **user_headers}

    def _resolve_files(self, method: str) -> list[FileAttachment]:
        if not self.multipart or not self.file:
            return []
        if method not in FILE_METHODS:
            raise ValidationError("Files can only be sent on POST, PUT, PATCH methods")

        attachments = []
        for entry in self.file:
            if isinstance(entry, str):
                filename, _, source = entry.partition(":")
            elif isinstance(entry, dict):
                filename = entry.get("filename") or ""
                source = entry.get("filePath") or entry.get("file_path") or ""
            else:
                filename = source = ""
            filename = filename.strip()
            source = source.strip()
            if not filename or not source:
                raise ValidationError(f"Invalid file format: {entry!r} (expected name:path)")

            if source.startswith(("http://", "https://")):
                raise ValidationError("Remote URLs are not allowed for files.")

            path = Path(source).expanduser().resolve()
            if not path.exists():
                raise ValidationError(f"File does not exist: {path}")
            attachments.append(FileAttachment(filename=filename, file_path=str(path)))
        return attachments
