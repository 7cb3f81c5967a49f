from delphi.api.realtime.routes import router

__all__ = ["router"]
