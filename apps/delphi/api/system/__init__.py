from delphi.api.system.routes import router

__all__ = ["router"]
