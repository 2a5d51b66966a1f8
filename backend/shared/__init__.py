"""
Shared infrastructure for the session core.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging and security audit helpers
  - constants.py: Roles, statuses, policy actions, event types

- shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy sessions, safe_commit(), translate_timeouts()
  - correlation.py: X-Request-ID middleware and log filter
  - events/: Event schema and Redis pub/sub publisher

- shared.security: Identity boundary
  - auth.py: JWT sign/verify, optional bearer dependency
  - rate_limit.py: slowapi limiter

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - validators.py: Input validation and normalization

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Roles, SessionStatus
    from shared.utils.exceptions import NotFoundError, InvalidStateError
"""
