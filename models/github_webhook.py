from pydantic import BaseModel
from typing import Any, Dict


class GitHubWebhook(BaseModel):
    ref: str
    after: str
    repository: Dict[str, Any]
    sender: Dict[str, Any] = {}
