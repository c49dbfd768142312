from abc import ABC, abstractmethod

class LoggingPort(ABC):
    """Sink for core log output. Messages use %-style lazy arguments."""

    @abstractmethod
    def info(self, msg: str, *args):
        pass

    @abstractmethod
    def warning(self, msg: str, *args):
        pass

    @abstractmethod
    def error(self, msg: str, *args):
        pass

    @abstractmethod
    def debug(self, msg: str, *args):
        pass
