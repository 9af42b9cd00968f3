from typing import Mapping
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict


class GitHubContext(BaseModel):
    """The triggering event, as the CI host describes it."""
    model_config = ConfigDict(frozen=True)

    ref: str = ""
    sha: str = ""
    actor: str = ""
    repository: str = ""
    server_url: str = "https://github.com"

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "GitHubContext":
        return cls(
            ref=environ.get("GITHUB_REF", ""),
            sha=environ.get("GITHUB_SHA", ""),
            actor=environ.get("GITHUB_ACTOR", ""),
            repository=environ.get("GITHUB_REPOSITORY", ""),
            server_url=environ.get("GITHUB_SERVER_URL") or "https://github.com",
        )

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo(self) -> str:
        parts = self.repository.split("/", 1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def host(self) -> str:
        return urlparse(self.server_url).netloc or "github.com"
