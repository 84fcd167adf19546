from pydantic import BaseModel


class AdminExportAction(BaseModel):
    # "setup" or "sync"; anything else is rejected with 400
    action: str
