"""
Administrative HTTP surface (/api/admin).
"""

from chat_gateway.admin.routes import router

__all__ = ["router"]
