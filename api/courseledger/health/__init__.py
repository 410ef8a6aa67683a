from courseledger.health.router import router


__all__ = ["router"]
