"""
Shared module for common utilities used by the chat gateway.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging and security audit helpers

- shared.security: Admin authentication
  - auth.py: JWT signing/verification, bearer token dependency
  - rate_limit.py: slowapi limiter for admin login

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger, mask_device
    from shared.security.auth import sign_admin_token, current_admin_context
    from shared.utils.exceptions import NotFoundError, UnauthorizedError
"""
