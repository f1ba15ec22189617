from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class GhRelease(BaseModel):
	"""One item of GET /repos/{owner}/{repo}/releases"""
	model_config = ConfigDict(extra="ignore")

	id: int
	tag_name: str = ""
	name: Optional[str] = None
	body: Optional[str] = None
	draft: bool = False
	prerelease: bool = False
	published_at: Optional[datetime] = None
	html_url: Optional[str] = None


class ConfigDocument(BaseModel):
	"""On-disk dashboard config. Accepts the camelCase keys of older config files."""
	model_config = ConfigDict(extra="ignore", populate_by_name=True)

	repos: list[str] = Field(default_factory=list)
	lookback_days: int = Field(
		default=31,
		ge=1,
		validation_alias=AliasChoices("lookback_days", "lookbackDays", "daysWindow"),
	)
	github_token: Optional[str] = Field(
		default=None,
		validation_alias=AliasChoices("github_token", "githubToken", "token"),
	)

	@field_validator("repos")
	@classmethod
	def _dedupe_repos(cls, value: list[str]) -> list[str]:
		seen: set[str] = set()
		out: list[str] = []
		for repo in value:
			key = repo.strip().lower()
			if not key or key in seen:
				continue
			seen.add(key)
			out.append(repo.strip())
		return out

	@field_validator("github_token")
	@classmethod
	def _blank_token_is_none(cls, value: Optional[str]) -> Optional[str]:
		if value is None:
			return None
		value = value.strip()
		return value or None
