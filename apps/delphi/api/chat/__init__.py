from delphi.api.chat.routes import router

__all__ = ["router"]
