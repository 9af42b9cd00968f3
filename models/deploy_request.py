from pydantic import BaseModel
from typing import Optional


class DeployRequest(BaseModel):
    repository: str
    ref: str
    sha: str
    actor: str
    deploy_branch: Optional[str] = None
