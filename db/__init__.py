from db.models import (
    Base, ResearchSessionRecord, ResearchOpportunityRecord
)
from db.database import (
    create_db_engine, create_session_factory,
    init_db, session_scope
)

__all__ = [
    "Base", "ResearchSessionRecord", "ResearchOpportunityRecord",
    "create_db_engine", "create_session_factory",
    "init_db", "session_scope"
]
