from .user_model import Users
from .plan_model import Plan
from .subscription_order_model import SubscriptionOrder
from .agent_model import Agent, OutputFormat
from .assistant_model import Assistant
from .job_ledger import JobStatus, JobLedgerMixin
from .transcription_model import Transcription
from .agent_action_model import AgentAction
from .assistant_history_model import AssistantHistory

__all__ = [
    "Users",
    "Plan",
    "SubscriptionOrder",
    "Agent",
    "OutputFormat",
    "Assistant",
    "JobStatus",
    "JobLedgerMixin",
    "Transcription",
    "AgentAction",
    "AssistantHistory",
]
