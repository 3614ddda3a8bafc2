"""Demo workspace used by the default application and the scenario tests."""

from datetime import datetime, timedelta
from typing import Optional

from chat_kernel.models.plan import EntityType
from chat_kernel.models.workspace import Automation, Client, Opportunity, Task, Workflow
from chat_kernel.workspace.store import WorkspaceStore, utcnow


def seed_demo_workspace(
    store: Optional[WorkspaceStore] = None,
    current_time: Optional[datetime] = None,
) -> WorkspaceStore:
    """Populate (or create) a store with a small, fixed advisory book."""
    store = store or WorkspaceStore()
    now = current_time or utcnow()
    today = now.date()

    clients = [
        Client(id="cli_sarah_chen", name="Sarah Chen", email="sarah.chen@example.com",
               risk_profile="aggressive", portfolio_value=2_400_000,
               created_at=now, updated_at=now),
        Client(id="cli_david_chen", name="David Chen", email="david.chen@example.com",
               risk_profile="moderate", portfolio_value=850_000,
               created_at=now, updated_at=now),
        Client(id="cli_john_smith", name="John Smith", email="john.smith@example.com",
               risk_profile="conservative", portfolio_value=1_200_000,
               created_at=now, updated_at=now),
        Client(id="cli_acme", name="Acme Holdings", email="treasury@acme.example.com",
               risk_profile="moderate", portfolio_value=5_100_000,
               created_at=now, updated_at=now),
        Client(id="cli_maria_garcia", name="Maria Garcia", email="maria@example.com",
               risk_profile="conservative", portfolio_value=640_000, status="prospect",
               created_at=now, updated_at=now),
    ]
    for client in clients:
        store.put(EntityType.CLIENT, client)

    tasks = [
        Task(id="task_rebalance", title="Rebalance Sarah Chen portfolio",
             status="needs-review", priority="high", client_id="cli_sarah_chen",
             due_date=today, created_at=now, updated_at=now),
        Task(id="task_kyc", title="Annual KYC refresh for Acme Holdings",
             status="needs-review", priority="medium", client_id="cli_acme",
             due_date=today + timedelta(days=3), created_at=now, updated_at=now),
        Task(id="task_call_john", title="Call John Smith about retirement plan",
             status="pending", priority="medium", client_id="cli_john_smith",
             due_date=today + timedelta(days=1), created_at=now, updated_at=now),
        Task(id="task_onboarding", title="Onboarding paperwork for Maria Garcia",
             status="in-progress", priority="low", client_id="cli_maria_garcia",
             due_date=today - timedelta(days=2), created_at=now, updated_at=now),
        Task(id="task_quarterly", title="Quarterly report draft",
             status="completed", priority="low", created_at=now, updated_at=now),
    ]
    for task in tasks:
        store.put(EntityType.TASK, task)

    opportunities = [
        Opportunity(id="opp_trust", title="Family trust setup", client_id="cli_sarah_chen",
                    type="milestone", impact_level="high", value=120_000, created_at=now),
        Opportunity(id="opp_bond", title="Municipal bond ladder", client_id="cli_john_smith",
                    type="market", impact_level="medium", value=45_000, created_at=now),
        Opportunity(id="opp_renewal", title="Custody contract renewal", client_id="cli_acme",
                    type="contract", impact_level="high", value=310_000, created_at=now),
    ]
    for opportunity in opportunities:
        store.put(EntityType.OPPORTUNITY, opportunity)

    store.put(EntityType.WORKFLOW, Workflow(
        id="wf_onboarding_maria", name="Client onboarding", client_id="cli_maria_garcia",
        steps=["Collect documents", "Risk questionnaire", "Open accounts"],
        current_step=1, started_at=now - timedelta(days=4),
    ))
    store.put(EntityType.WORKFLOW, Workflow(
        id="wf_annual_review", name="Annual review", client_id="cli_john_smith",
        steps=["Schedule meeting", "Prepare report", "Meet", "Follow up"],
        started_at=now - timedelta(days=1),
    ))

    store.put(EntityType.AUTOMATION, Automation(
        id="auto_birthday", name="Birthday greetings", trigger="client birthday",
        last_run_at=now - timedelta(days=2),
    ))
    store.put(EntityType.AUTOMATION, Automation(
        id="auto_drift_alert", name="Portfolio drift alert", trigger="allocation drift > 5%",
    ))

    return store
