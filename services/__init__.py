from services.container import AuthServices, build_services

__all__ = ["AuthServices", "build_services"]
