from srchd.db.agents_db import Agent, AgentsDB
from srchd.db.artifacts_db import ArtifactsDB, Message, Publication
from srchd.db.database import Database
from srchd.db.experiments_db import CASCADE_ORDER, Experiment, ExperimentsDB
from srchd.db.usage_db import TokenUsage, UsageDB

__all__ = [
    "Agent",
    "AgentsDB",
    "ArtifactsDB",
    "Message",
    "Publication",
    "Database",
    "CASCADE_ORDER",
    "Experiment",
    "ExperimentsDB",
    "TokenUsage",
    "UsageDB",
]
