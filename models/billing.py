from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    # Validated against the plan catalogue by the billing service
    plan_type: str
