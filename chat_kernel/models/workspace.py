"""Business records held by the workspace store."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class Client(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    risk_profile: str = "moderate"  # conservative | moderate | aggressive
    portfolio_value: float = 0.0
    status: str = "active"          # active | inactive | prospect | archived
    notes: str = ""
    created_at: datetime
    updated_at: datetime

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def summary(self) -> str:
        return f"{self.risk_profile} risk, ${self.portfolio_value:,.0f} portfolio"


class Task(BaseModel):
    id: str
    title: str
    description: str = ""
    status: str = "pending"         # pending | in-progress | needs-review | completed
    priority: str = "medium"        # low | medium | high
    client_id: Optional[str] = None
    due_date: Optional[date] = None
    review_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def display_name(self) -> str:
        return self.title

    @property
    def summary(self) -> str:
        due = f", due {self.due_date.isoformat()}" if self.due_date else ""
        return f"{self.status}, {self.priority} priority{due}"


class Opportunity(BaseModel):
    id: str
    title: str
    client_id: Optional[str] = None
    type: str = "contract"          # contract | milestone | market
    impact_level: str = "medium"    # high | medium | low
    value: float = 0.0
    status: str = "new"             # new | viewed | snoozed | dismissed | actioned | archived
    snoozed_until: Optional[datetime] = None
    dismiss_reason: Optional[str] = None
    created_at: datetime

    @property
    def display_name(self) -> str:
        return self.title

    @property
    def summary(self) -> str:
        return f"{self.impact_level} impact {self.type}, ${self.value:,.0f}"


class Workflow(BaseModel):
    id: str
    name: str
    client_id: Optional[str] = None
    status: str = "active"          # active | completed | paused | cancelled
    steps: List[str] = []
    current_step: int = 0
    started_at: datetime

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def summary(self) -> str:
        return f"{self.status}, step {self.current_step + 1} of {max(len(self.steps), 1)}"


class Automation(BaseModel):
    id: str
    name: str
    trigger: str
    status: str = "running"         # running | paused | pending
    last_run_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def summary(self) -> str:
        return f"{self.status}, triggered by {self.trigger}"


class OutboundEmail(BaseModel):
    id: str
    client_id: str
    to: str
    subject: str
    body: str
    sent_at: datetime
