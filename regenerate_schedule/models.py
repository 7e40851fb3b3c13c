from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Adapter output: canonical camelCase keys, provider aliases already resolved.
RawRecord = Dict[str, Any]

DEFAULT_MEETING_NAME = "Untitled Meeting"
DEFAULT_DURATION_MINUTES = 60


class NormalizedMeeting(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    day_of_week: str = Field(alias="dayOfWeek")
    start_time: str = Field(alias="startTime")
    meeting_name: str = Field(default=DEFAULT_MEETING_NAME, alias="meetingName", min_length=1)
    duration_minutes: int = Field(default=DEFAULT_DURATION_MINUTES, alias="durationMinutes", gt=0)

    meeting_id: Optional[str] = Field(default=None, alias="meetingId")
    password: Optional[str] = None
    join_url: Optional[str] = Field(default=None, alias="joinUrl")
    contact_info: Optional[str] = Field(default=None, alias="contactInfo")
    notes: Optional[str] = None


class ScheduleMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schedule_type: str = Field(alias="scheduleType")
    generated_at: datetime = Field(alias="generatedAt")


class SchedulePayload(BaseModel):
    """What gets injected into the HTML template and uploaded as <site>.json."""

    metadata: ScheduleMetadata
    meetings: List[NormalizedMeeting] = Field(default_factory=list)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TenantConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    source_identifier: str = Field(alias="sourceIdentifier")
    site_identifier: str = Field(alias="siteIdentifier")
    artifact_name: Optional[str] = Field(default=None, alias="artifactName")
    template_key: Optional[str] = Field(default=None, alias="templateKey")

    @property
    def html_key(self) -> str:
        return self.artifact_name or f"{self.site_identifier}.html"

    @property
    def json_key(self) -> str:
        return f"{self.site_identifier}.json"


@dataclass
class TenantOutcome:
    tenant: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class JobResult:
    outcomes: List[TenantOutcome] = field(default_factory=list)

    @property
    def errors(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def success(self) -> bool:
        return self.errors == 0

    @property
    def failed_tenants(self) -> List[TenantOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def summary(self) -> Dict[str, Any]:
        return {"success": self.success, "errors": self.errors}
