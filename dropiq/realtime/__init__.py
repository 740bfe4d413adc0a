from .alerts import SecurityAlertChannel

__all__ = ["SecurityAlertChannel"]
