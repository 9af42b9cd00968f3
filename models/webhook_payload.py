from pydantic import BaseModel


class WebhookPayload(BaseModel):
    repo: str
